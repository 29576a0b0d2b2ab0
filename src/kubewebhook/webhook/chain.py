"""
Helpers shared by the mutator and validator chains.
"""

from kubewebhook.context import ReviewContext
from kubewebhook.errors import ChainCancelledError


def ensure_not_done(ctx: ReviewContext, chain_name: str) -> None:
    """Raise ChainCancelledError when the review context is done."""
    if ctx.done():
        raise ChainCancelledError(
            f"{chain_name} chain not finished correctly, {ctx.reason()}"
        )

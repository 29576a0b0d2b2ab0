"""
Unit tests for mutator and validator chains.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from kubewebhook.context import ReviewContext
from kubewebhook.errors import ChainCancelledError, ChainError
from kubewebhook.objects import Unstructured, meta_accessor
from kubewebhook.webhook import (
    MutatorChain,
    MutatorFunc,
    MutatorResult,
    ValidatorChain,
    ValidatorFunc,
    ValidatorResult,
)
from tests.fixtures.admission import POD, make_review


def mock_mutator(result=None, side_effect=None):
    mutator = MagicMock()
    mutator.mutate = AsyncMock(return_value=result, side_effect=side_effect)
    return mutator


def mock_validator(result=None, side_effect=None):
    validator = MagicMock()
    validator.validate = AsyncMock(return_value=result, side_effect=side_effect)
    return validator


def label_mutator(key: str, value: str) -> MutatorFunc:
    async def mutate(ctx, review, obj):
        meta = meta_accessor(obj)
        labels = meta.get_labels()
        labels[key] = value
        meta.set_labels(labels)
        return MutatorResult(warnings=[f"set {key}"])

    return MutatorFunc(mutate)


@pytest.fixture
def ctx():
    return ReviewContext.background()


@pytest.fixture
def review():
    return make_review(obj=POD)


class TestMutatorChain:
    @pytest.mark.asyncio
    async def test_steps_fold_in_order(self, ctx, review):
        chain = MutatorChain(label_mutator("a", "1"), label_mutator("b", "2"))
        obj = Unstructured({"metadata": {}})

        result = await chain.mutate(ctx, review, obj)

        assert meta_accessor(result.mutated_object).get_labels() == {"a": "1", "b": "2"}
        assert result.warnings == ["set a", "set b"]
        assert result.stop_chain is False

    @pytest.mark.asyncio
    async def test_replacement_object_is_passed_to_next_step(self, ctx, review):
        replacement = Unstructured({"metadata": {"name": "replacement"}})
        first = mock_mutator(MutatorResult(mutated_object=replacement))
        second = mock_mutator(MutatorResult())

        result = await MutatorChain(first, second).mutate(ctx, review, Unstructured())

        assert second.mutate.await_args.args[2] is replacement
        assert result.mutated_object is replacement

    @pytest.mark.asyncio
    async def test_stop_chain(self, ctx, review):
        stopper = MutatorResult(stop_chain=True, warnings=["w2"])
        first = mock_mutator(MutatorResult(warnings=["w1"]))
        second = mock_mutator(stopper)
        third = mock_mutator(MutatorResult(warnings=["w3"]))

        result = await MutatorChain(first, second, third).mutate(
            ctx, review, Unstructured()
        )

        assert result.stop_chain is True
        assert result.warnings == ["w1", "w2"]
        assert stopper.warnings == ["w2"]
        third.mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shared_stop_result_is_not_modified(self, ctx, review):
        stop = MutatorResult(stop_chain=True, warnings=["w2"])
        chain = MutatorChain(
            mock_mutator(MutatorResult(warnings=["w1"])), mock_mutator(stop)
        )

        for _ in range(3):
            result = await chain.mutate(ctx, review, Unstructured())
            assert result.warnings == ["w1", "w2"]

        assert stop.warnings == ["w2"]

    @pytest.mark.asyncio
    async def test_step_error_aborts(self, ctx, review):
        failing = mock_mutator(side_effect=ValueError("boom"))
        never = mock_mutator(MutatorResult())

        with pytest.raises(ValueError, match="boom"):
            await MutatorChain(failing, never).mutate(ctx, review, Unstructured())
        never.mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_result_is_an_error(self, ctx, review):
        with pytest.raises(ChainError, match="can't be None"):
            await MutatorChain(mock_mutator(None)).mutate(ctx, review, Unstructured())

    @pytest.mark.asyncio
    async def test_cancelled_context(self, ctx, review):
        mutator = mock_mutator(MutatorResult())
        ctx.cancel()

        with pytest.raises(ChainCancelledError, match="mutator chain not finished"):
            await MutatorChain(mutator).mutate(ctx, review, Unstructured())
        mutator.mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_between_steps(self, ctx, review):
        async def cancel(c, r, o):
            c.cancel()
            return MutatorResult()

        after = mock_mutator(MutatorResult())
        with pytest.raises(ChainCancelledError):
            await MutatorChain(MutatorFunc(cancel), after).mutate(
                ctx, review, Unstructured()
            )
        after.mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_deadline(self, review):
        ctx = ReviewContext.background().with_timeout(0)
        with pytest.raises(ChainCancelledError, match="deadline exceeded"):
            await MutatorChain(mock_mutator(MutatorResult())).mutate(
                ctx, review, Unstructured()
            )

    @pytest.mark.asyncio
    async def test_chains_nest(self, ctx, review):
        inner = MutatorChain(label_mutator("a", "1"), label_mutator("b", "2"))
        outer = MutatorChain(inner, label_mutator("c", "3"))

        result = await outer.mutate(ctx, review, Unstructured())

        assert result.warnings == ["set a", "set b", "set c"]
        assert meta_accessor(result.mutated_object).get_labels() == {
            "a": "1",
            "b": "2",
            "c": "3",
        }

    @pytest.mark.asyncio
    async def test_empty_chain_returns_object(self, ctx, review):
        obj = Unstructured()
        result = await MutatorChain().mutate(ctx, review, obj)

        assert result.mutated_object is obj
        assert result.warnings == []


class TestValidatorChain:
    @pytest.mark.asyncio
    async def test_all_valid(self, ctx, review):
        chain = ValidatorChain(
            mock_validator(ValidatorResult(valid=True, warnings=["w1"])),
            mock_validator(ValidatorResult(valid=True, warnings=["w2"])),
        )

        result = await chain.validate(ctx, review, Unstructured())

        assert result.valid is True
        assert result.warnings == ["w1", "w2"]

    @pytest.mark.asyncio
    async def test_stop_chain_short_circuits(self, ctx, review):
        first = mock_validator(ValidatorResult(valid=True, warnings=["w1"]))
        second = mock_validator(
            ValidatorResult(stop_chain=True, valid=True, warnings=["w2"])
        )
        third = mock_validator(ValidatorResult(valid=False, warnings=["w3"]))

        result = await ValidatorChain(first, second, third).validate(
            ctx, review, Unstructured()
        )

        assert result.valid is True
        assert result.warnings == ["w1", "w2"]
        third.validate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_short_circuits(self, ctx, review):
        first = mock_validator(ValidatorResult(valid=True, warnings=["w1"]))
        second = mock_validator(ValidatorResult(valid=False, message="nope"))
        third = mock_validator(ValidatorResult(valid=True))

        result = await ValidatorChain(first, second, third).validate(
            ctx, review, Unstructured()
        )

        assert result.valid is False
        assert result.message == "nope"
        assert result.warnings == ["w1"]
        third.validate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shared_deny_result_is_not_modified(self, ctx, review):
        deny = ValidatorResult(valid=False, message="denied", warnings=["w2"])
        chain = ValidatorChain(
            mock_validator(ValidatorResult(valid=True, warnings=["w1"])),
            mock_validator(deny),
        )

        for _ in range(3):
            result = await chain.validate(ctx, review, Unstructured())
            assert result.valid is False
            assert result.message == "denied"
            assert result.warnings == ["w1", "w2"]

        assert deny.warnings == ["w2"]

    @pytest.mark.asyncio
    async def test_step_error_aborts(self, ctx, review):
        never = mock_validator(ValidatorResult(valid=True))
        with pytest.raises(RuntimeError):
            await ValidatorChain(
                mock_validator(side_effect=RuntimeError("broken")), never
            ).validate(ctx, review, Unstructured())
        never.validate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_result_is_an_error(self, ctx, review):
        with pytest.raises(ChainError, match="validator result can't be None"):
            await ValidatorChain(mock_validator(None)).validate(
                ctx, review, Unstructured()
            )

    @pytest.mark.asyncio
    async def test_cancelled_context(self, ctx, review):
        validator = mock_validator(ValidatorResult(valid=True))
        ctx.cancel()

        with pytest.raises(ChainCancelledError, match="validator chain"):
            await ValidatorChain(validator).validate(ctx, review, Unstructured())
        validator.validate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disconnected_client(self, review):
        ctx = ReviewContext.background().with_disconnect_probe(lambda: True)
        with pytest.raises(ChainCancelledError, match="client disconnected"):
            await ValidatorChain(mock_validator(ValidatorResult(valid=True))).validate(
                ctx, review, Unstructured()
            )

    @pytest.mark.asyncio
    async def test_validator_func(self, ctx, review):
        async def validate(c, r, obj):
            return ValidatorResult(valid=obj.get_name() == "ok")

        chain = ValidatorChain(ValidatorFunc(validate))
        result = await chain.validate(ctx, review, Unstructured({"metadata": {"name": "ok"}}))

        assert result.valid is True

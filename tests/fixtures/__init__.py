"""Shared test data for kubewebhook tests."""

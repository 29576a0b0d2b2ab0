"""
Tests package - test suite for kubewebhook.

Contains:
- unit/: Unit tests for individual components
- fixtures/: Sample Kubernetes objects and admission review builders
"""

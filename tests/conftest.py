"""
This file contains shared fixtures for all tests.
"""
import logging

import pytest

from workspacerouting.operator.config import OperatorConfig
from workspacerouting.operator.routing.reconciler import RoutingReconciler
from workspacerouting.operator.routing.solvers import SolverGetter

from tests.helpers import TEST_SUFFIX, FakeCluster


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("workspacerouting.tests")


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(cluster_host_suffix=TEST_SUFFIX)


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def kubernetes_reconciler(config, fake_cluster) -> RoutingReconciler:
    """Reconciler for a plain Kubernetes cluster."""
    return RoutingReconciler(SolverGetter(config, is_openshift=False), fake_cluster, is_openshift=False)


@pytest.fixture
def openshift_reconciler(config, fake_cluster) -> RoutingReconciler:
    """Reconciler for an OpenShift cluster."""
    return RoutingReconciler(SolverGetter(config, is_openshift=True), fake_cluster, is_openshift=True)

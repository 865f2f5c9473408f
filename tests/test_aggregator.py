import pytest

from analysis.aggregator import (
    SelectorError,
    aggregate_requests,
    aggregate_usage,
    aggregate_workload,
    build_snapshot,
    selector_to_query,
)
from analysis.workload import WorkloadKind
from normalize.quantity import MEBIBYTE


def _workload(containers, selector=None, kind='Deployment'):
    return {
        'kind': kind,
        'name': 'web',
        'namespace': 'shop',
        'containers': containers,
        'selector': selector,
    }


class TestSelectorToQuery:

    def test_match_labels_sorted(self):
        sel = {'match_labels': {'tier': 'front', 'app': 'web'}, 'match_expressions': []}
        assert selector_to_query(sel) == 'app=web,tier=front'

    def test_single_value_in_expression(self):
        sel = {
            'match_labels': {'app': 'web'},
            'match_expressions': [{'key': 'track', 'operator': 'In', 'values': ['stable']}],
        }
        assert selector_to_query(sel) == 'app=web,track=stable'

    def test_absent_selector_selects_everything(self):
        assert selector_to_query(None) == ''
        assert selector_to_query({'match_labels': {}, 'match_expressions': []}) == ''

    @pytest.mark.parametrize('expr', [
        {'key': 'track', 'operator': 'In', 'values': ['a', 'b']},
        {'key': 'track', 'operator': 'In', 'values': []},
        {'key': 'track', 'operator': 'NotIn', 'values': ['canary']},
        {'key': 'track', 'operator': 'Exists', 'values': []},
        {'key': 'track', 'operator': 'DoesNotExist'},
        {'key': 'track', 'operator': 'Matches', 'values': ['x']},
    ])
    def test_unconvertible_expressions_raise(self, expr):
        with pytest.raises(SelectorError):
            selector_to_query({'match_labels': {}, 'match_expressions': [expr]})


def test_requests_sum_across_containers():
    res = aggregate_requests([
        {'cpu_request': '500m', 'memory_request': '256Mi'},
        {'cpu_request': '250m', 'memory_request': '128Mi'},
    ])
    assert res.cpu.milli_value() == 750
    assert res.memory.value() == 384 * MEBIBYTE


def test_container_without_request_contributes_zero():
    res = aggregate_requests([
        {'cpu_request': None, 'memory_request': None},
        {'cpu_request': '100m'},
    ])
    assert res.cpu.milli_value() == 100
    assert res.memory.is_zero()


def test_requests_order_independent():
    a = {'cpu_request': '100m', 'memory_request': '64Mi'}
    b = {'cpu_request': '1', 'memory_request': '1Gi'}
    c = {'cpu_request': '333m', 'memory_request': '10M'}
    forward = aggregate_requests([a, b, c])
    backward = aggregate_requests([c, b, a])
    assert forward == backward


def test_usage_sums_all_containers_of_all_pods():
    pods = [
        {'name': 'p1', 'containers': [{'cpu': '100m', 'memory': '10Mi'}, {'cpu': '50m', 'memory': '5Mi'}]},
        {'name': 'p2', 'containers': [{'cpu': '200m', 'memory': '20Mi'}]},
    ]
    res = aggregate_usage(pods)
    assert res.cpu.milli_value() == 350
    assert res.memory.value() == 35 * MEBIBYTE


def test_snapshot_replicas_count_live_pods():
    pods = [{'name': 'p1', 'containers': []}, {'name': 'p2', 'containers': []}]
    snap = build_snapshot(_workload([{'cpu_request': '1'}], kind='StatefulSets'), pods)
    assert snap.replicas == 2
    assert snap.identity.kind is WorkloadKind.STATEFUL_SET
    assert snap.identity.namespace == 'shop'
    assert snap.identity.name == 'web'
    assert snap.requested.cpu.milli_value() == 1000
    assert snap.observed.cpu.is_zero()


def test_aggregate_workload_queries_by_selector():
    calls = []

    def fetch(namespace, query):
        calls.append((namespace, query))
        return [{'name': 'web-1', 'containers': [{'cpu': '10m', 'memory': '1Mi'}]}]

    wl = _workload([{'cpu_request': '100m'}], selector={'match_labels': {'app': 'web'}})
    snap = aggregate_workload(wl, fetch)
    assert calls == [('shop', 'app=web')]
    assert snap.replicas == 1
    assert snap.observed.cpu.milli_value() == 10


def test_aggregate_workload_bad_selector_does_not_fetch():
    fetch_calls = []
    wl = _workload([], selector={
        'match_labels': {},
        'match_expressions': [{'key': 'a', 'operator': 'Exists', 'values': []}],
    })
    with pytest.raises(SelectorError):
        aggregate_workload(wl, lambda ns, q: fetch_calls.append(q) or [])
    assert fetch_calls == []


def test_aggregate_workload_propagates_fetch_errors():
    def fetch(namespace, query):
        raise RuntimeError('metrics api down')

    with pytest.raises(RuntimeError):
        aggregate_workload(_workload([]), fetch)

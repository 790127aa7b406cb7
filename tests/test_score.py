import pytest

from opascore.score import ControlInput, ScoreError, ScoreUtil, is_workload


def make_resource(kind, name="mock", replicas=None, desired=None):
    api = {
        "Deployment": "apps/v1",
        "ReplicaSet": "apps/v1",
        "DaemonSet": "apps/v1",
        "Role": "rbac.authorization.k8s.io/v1",
    }.get(kind, "v1")
    obj = {"apiVersion": api, "kind": kind, "metadata": {"name": name, "namespace": "default"}}
    if kind in ("Deployment", "ReplicaSet"):
        obj["spec"] = {"replicas": 3 if replicas is None else replicas}
    if kind == "DaemonSet":
        obj["status"] = {"desiredNumberScheduled": 13 if desired is None else desired}
    return obj


def service_account_vector(*extra_related):
    related = [make_resource("Role", "role"), make_resource("Pod", "pod"), *extra_related]
    return {"name": "sa", "namespace": "default", "relatedObjects": related}


def mock_resources():
    return {
        "resource-1": make_resource("Role", "resource-1"),
        "resource-2": make_resource("Deployment", "resource-2"),
        "resource-3": make_resource("Pod", "resource-3"),
        "resource-4": make_resource("Pod", "resource-4"),
        "resource-5": make_resource("Secret", "resource-5"),
        "resource-6": make_resource("DaemonSet", "resource-6", desired=3),
        "resource-7": make_resource("Pod", "resource-7"),
        "resource-8": make_resource("Pod", "resource-8"),
        "resource-9": make_resource("Pod", "resource-9"),
        "resource-10": make_resource("Pod", "resource-10"),
    }


def mock_frameworks():
    fw1 = [
        ControlInput("control-1", ["resource-1", "resource-2"],
                     ["resource-1", "resource-2", "resource-3"], 7.0),
        ControlInput("control-2", [], ["resource-4"], 11.0),
    ]
    fw2 = [
        ControlInput("control-3", ["resource-5", "resource-6"],
                     ["resource-5", "resource-6", "resource-7", "resource-8"], 13.0),
        ControlInput("control-4", [], ["resource-9", "resource-10"], 17.0),
    ]
    return fw1, fw2


EXPECTED_CONTROLS = {
    "control-1": 81.13208,
    "control-2": 0.0,
    "control-3": 66.666664,
    "control-4": 0.0,
}


@pytest.mark.parametrize("kind", ["Deployment", "ReplicaSet"])
def test_workload_with_three_replicas(kind):
    assert ScoreUtil(debug=False).get_score(make_resource(kind)) == pytest.approx(3.30, abs=1e-6)


@pytest.mark.parametrize("kind", ["Deployment", "ReplicaSet"])
def test_workload_with_one_replica(kind):
    obj = make_resource(kind, replicas=1)
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(1.0, abs=1e-6)


def test_active_daemonset():
    assert ScoreUtil(debug=False).get_score(make_resource("DaemonSet")) == pytest.approx(13.0)


def test_daemonset_zero_desired_yields_default():
    obj = make_resource("DaemonSet", desired=0)
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(1.0)


def test_daemonset_desired_multiplies():
    obj = make_resource("DaemonSet", desired=10)
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(10.0)


def test_daemonset_invalid_status_leaves_score():
    obj = make_resource("DaemonSet")
    obj["status"]["desiredNumberScheduled"] = "many"
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(1.0)


@pytest.mark.parametrize("kind", ["Pod", "Role", "Secret"])
def test_default_score_resources(kind):
    obj = make_resource(kind)
    assert is_workload(obj)
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "obj",
    [
        {"kind": "Pod"},
        {"apiVersion": "v1"},
        {"apiVersion": "", "kind": "Pod"},
        {},
    ],
)
def test_invalid_resources_yield_default(obj):
    assert not is_workload(obj)
    assert ScoreUtil(debug=False).get_score(obj) == pytest.approx(1.0)


def test_rego_response_vector_default_score():
    vec = service_account_vector()
    assert not is_workload(vec)
    assert ScoreUtil(debug=False).get_score(vec) == pytest.approx(1.0)


def test_non_workload_related_objects_do_not_contribute():
    vec = service_account_vector({"apiVersion": "hostdata.kubescape.cloud/v1", "name": "not-a-workload"})
    assert len(vec["relatedObjects"]) == 3
    assert ScoreUtil(debug=False).get_score(vec) == pytest.approx(1.0)


def test_framework_score_empty_raises():
    with pytest.raises(ScoreError):
        ScoreUtil({}, debug=False).framework_score("empty", [])


def test_framework_score_skipped_controls_raise():
    controls = [ControlInput("Skippie1"), ControlInput("Skippie2")]
    with pytest.raises(ScoreError, match="skipped"):
        ScoreUtil({}, debug=False).framework_score("skipped", controls)
    assert [c.score for c in controls] == [0.0, 0.0]


def test_v2_mock_report():
    util = ScoreUtil(mock_resources(), debug=False)
    fw1, fw2 = mock_frameworks()
    assert util.framework_score("mock-fw-summary-1", fw1) == pytest.approx(62.577965, rel=1e-6)
    assert util.framework_score("mock-fw-summary-2", fw2) == pytest.approx(46.42857, rel=1e-6)
    for control in fw1 + fw2:
        assert control.score == pytest.approx(EXPECTED_CONTROLS[control.control_id], rel=1e-6, abs=1e-6)


def test_v2_mock_totals():
    util = ScoreUtil(mock_resources(), debug=False)
    fw1, fw2 = mock_frameworks()
    unnormalized, wcs = util.controls_summaries_score(fw1 + fw2)
    assert unnormalized == pytest.approx(82.1, rel=1e-6)
    assert wcs == pytest.approx(160.1, rel=1e-6)


def test_v2_control_score_values():
    util = ScoreUtil(mock_resources(), debug=False)
    result = util.control_v2_score([], ["resource-9", "resource-10"], 17.0)
    assert result.score == 0.0
    assert result.unnormalized == 0.0
    assert result.wcs == pytest.approx(34.0)


def test_v1_control_scores():
    util = ScoreUtil(mock_resources(), debug=False)
    fw1, fw2 = mock_frameworks()
    for control in fw1 + fw2:
        result = util.control_score(control.failed_ids, control.all_ids, control.score_factor)
        assert result.score == pytest.approx(EXPECTED_CONTROLS[control.control_id], rel=1e-6, abs=1e-6)


def test_v1_passed_control_weighs_base_score():
    util = ScoreUtil(mock_resources(), debug=False)
    result = util.control_score([], ["resource-9", "resource-10"], 17.0)
    assert result.wcs == pytest.approx(17.0)
    assert result.unnormalized == 0.0


def test_v1_control_1_components():
    util = ScoreUtil(mock_resources(), debug=False)
    result = util.control_score(["resource-1", "resource-2"], ["resource-1", "resource-2", "resource-3"], 7.0)
    assert result.unnormalized == pytest.approx(30.1)
    assert result.wcs == pytest.approx(37.1)


def test_v1_control_score_zero_base():
    util = ScoreUtil(mock_resources(), debug=True)
    result = util.control_score(["resource-1", "resource-2"], ["resource-3"], 0.0)
    assert result.wcs == 0.0
    assert result.unnormalized == 0.0


def test_debug_output(capsys):
    util = ScoreUtil(mock_resources(), debug=True)
    fw1, _ = mock_frameworks()
    util.framework_score("mock-fw-summary-1", fw1)
    assert "framework mock-fw-summary-1 score" in capsys.readouterr().out


def test_debug_from_environment(monkeypatch):
    monkeypatch.setenv("ARMO_DEBUG_MODE", "TRUE")
    assert ScoreUtil().debug is True
    monkeypatch.setenv("ARMO_DEBUG_MODE", "no")
    assert ScoreUtil().debug is False
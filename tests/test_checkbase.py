import pytest

from devtree.checkbase import Check, CheckStatus, is_multiple_of
from devtree.tree import DtInfo, Node, Property


def _tree():
    root = Node("")
    a = root.add_child(Node("a"))
    a.add_child(Node("b"))
    root.add_child(Node("c"))
    return root


def _failing(check, dti, node):
    if node.parent is None:
        check.fail(dti, node, "always_fail check")


def _noop(check, dti, node):
    pass


@pytest.mark.parametrize(
    "multiple, divisor, expected",
    [(0, 0, True), (4, 0, False), (8, 4, True), (6, 4, False), (0, 4, True)],
)
def test_is_multiple_of(multiple, divisor, expected):
    assert is_multiple_of(multiple, divisor) is expected


def test_passing_check_reports_no_error():
    check = Check("ok", _noop, error=True)
    assert check.run(DtInfo(_tree())) is False
    assert check.status is CheckStatus.PASSED
    assert check.messages == []


def test_visits_nodes_depth_first():
    seen = []
    check = Check("visit", lambda c, d, n: seen.append(n.fullpath), warn=True)
    check.run(DtInfo(_tree()))
    assert seen == ["/", "/a", "/a/b", "/c"]


def test_failed_error_check_message_and_result():
    check = Check("always_fail", _failing, error=True)
    assert check.run(DtInfo(_tree())) is True
    assert check.status is CheckStatus.FAILED
    assert check.messages == ["<stdout>: ERROR (always_fail): /: always_fail check\n"]


def test_failed_warning_is_not_an_error(capsys):
    check = Check("always_fail", _failing, warn=True)
    assert check.run(DtInfo(_tree())) is False
    assert check.status is CheckStatus.FAILED
    err = capsys.readouterr().err
    assert err == "<stdout>: Warning (always_fail): /: always_fail check\n"


def test_outname_used_when_not_stdout():
    check = Check("always_fail", _failing, error=True)
    check.run(DtInfo(_tree(), outname="out.dtb"))
    assert check.messages[0].startswith("out.dtb: ERROR (always_fail): ")


def test_quiet_suppresses_messages_but_not_status():
    check = Check("always_fail", _failing, warn=True)
    check.run(DtInfo(_tree(), quiet=1))
    assert check.messages == []
    assert check.status is CheckStatus.FAILED


def test_node_srcpos_and_also_defined_at():
    root = _tree()
    root.srcpos = ["one.dts:1", "two.dts:2"]
    check = Check("always_fail", _failing, error=True)
    check.run(DtInfo(root))
    assert check.messages[0] == (
        "one.dts:1: ERROR (always_fail): /: always_fail check\n"
        "  also defined at two.dts:2\n"
    )


def test_property_location_in_message():
    root = _tree()
    prop = root.add_property(Property("model", srcpos=["p.dts:3"]))

    def fn(check, dti, node):
        if node is root:
            check.fail(dti, node, "property is not a string", prop)

    check = Check("prop", fn, error=True)
    check.run(DtInfo(root))
    assert check.messages == ["p.dts:3: ERROR (prop): /:model: property is not a string\n"]


def test_failed_prerequisite_blocks_check():
    calls = []
    pre = Check("pre", _failing, error=True)
    main = Check("main", lambda c, d, n: calls.append(n), warn=True, prereqs=[pre])
    main.run(DtInfo(_tree()))
    assert main.status is CheckStatus.PREREQ
    assert calls == []
    assert "Failed prerequisite 'pre'" in main.messages[0]


def test_check_runs_only_once():
    calls = []
    check = Check("count", lambda c, d, n: calls.append(n), warn=True)
    dti = DtInfo(_tree())
    check.run(dti)
    first = len(calls)
    check.run(dti)
    assert len(calls) == first
    assert check.inprogress is False


def test_passed_prerequisite_allows_check():
    pre = Check("pre", _noop, warn=True)
    main = Check("main", _noop, warn=True, prereqs=[pre])
    main.run(DtInfo(_tree()))
    assert pre.status is CheckStatus.PASSED
    assert main.status is CheckStatus.PASSED
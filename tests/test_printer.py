"""
Test suite for the result-file formatting and writing.
"""

import pytest

from arraysafety.abstract_domain import IntervalDomain
from arraysafety.abstract_interpreter import AnalysisTrace
from arraysafety.abstract_state import BOTTOM, Interval
from arraysafety.analysis import ArraySafetyAnalyzer
from arraysafety.bounds_checker import Verdict
from arraysafety.config import AnalysisConfig
from arraysafety.errors import ReportError
from arraysafety.printer import (
    format_points_to,
    format_safety,
    format_trace,
    points_to_report_name,
    safety_report_name,
    trace_report_name,
    write_reports,
    write_trace_report,
)
from arraysafety.source_parser import lower_method


@pytest.fixture
def foo_result(basic_test_source):
    def run(record_trace):
        body = lower_method(basic_test_source, "BasicTest", "foo")
        config = AnalysisConfig(lower_bound=0, upper_bound=10, record_trace=record_trace)
        return ArraySafetyAnalyzer(config).analyze(body)
    return run


class TestNames:

    def test_report_names(self):
        assert safety_report_name("BasicTest", "foo") == "Output_BasicTest_foo.txt"
        assert points_to_report_name("BasicTest", "foo") == (
            "Output_BasicTest_points_to_analysis_foo.txt"
        )
        assert trace_report_name("BasicTest", "foo") == "BasicTest.foo.fulloutput.txt"


class TestFormatting:
    """Test the text layout of each report."""

    def test_safety_sorted_by_point(self):
        verdicts = {10: Verdict.POTENTIALLY_UNSAFE, 2: Verdict.SAFE}
        assert format_safety("C", "m", verdicts) == (
            "C.m: 02: Safe\n"
            "C.m: 10: Potentially Unsafe\n"
        )

    def test_safety_empty(self):
        assert format_safety("C", "m", {}) == ""

    def test_points_to_lines(self, foo_result):
        text = format_points_to(foo_result(False).pointer_facts)
        lines = text.splitlines()
        assert lines[0] == "00 : {a=[null], b=[null], c=[null]}"
        assert lines[1] == "01 : {a=[null], b=[new00], c=[null]}"
        assert lines[7] == "07 : {a=[new00, new01], b=[new00], c=[new01]}"
        assert len(lines) == 15

    def test_trace_layout(self):
        domain = IntervalDomain(["i", "n"], 0, 10)
        trace = AnalysisTrace()
        trace.record(1, domain.make({"i": Interval(0, 0), "n": Interval.top()}))
        trace.separate()
        trace.separate()
        trace.record(2, BOTTOM)
        trace.record(3, domain.make({"i": Interval(1, 11), "n": Interval(2, 2)}))
        trace.separate()
        assert format_trace("C", "m", trace) == (
            "C.m: in01: i:[0, 0]\n"
            "C.m: in01: n:[-inf, inf]\n"
            "\n"
            "C.m: in03: i:[1, inf]\n"
            "C.m: in03: n:[2, 2]\n"
            "\n"
        )


class TestWriting:
    """Test files written for an analysis result."""

    def test_write_all_reports(self, foo_result, tmp_path):
        paths = write_reports(foo_result(True), tmp_path / "out")
        assert sorted(p.name for p in paths) == [
            "BasicTest.foo.fulloutput.txt",
            "Output_BasicTest_foo.txt",
            "Output_BasicTest_points_to_analysis_foo.txt",
        ]
        safety = (tmp_path / "out" / "Output_BasicTest_foo.txt").read_text()
        assert safety == (
            "BasicTest.foo: 02: Safe\n"
            "BasicTest.foo: 10: Safe\n"
            "BasicTest.foo: 11: Safe\n"
        )
        trace = (tmp_path / "out" / "BasicTest.foo.fulloutput.txt").read_text()
        assert trace.startswith("BasicTest.foo: in01: $t0:[-inf, inf]\n")

    def test_no_trace_file_without_trace(self, foo_result, tmp_path):
        paths = write_reports(foo_result(False), tmp_path)
        assert len(paths) == 2

    def test_trace_report_requires_trace(self, foo_result, tmp_path):
        with pytest.raises(ReportError):
            write_trace_report(foo_result(False), tmp_path)

    def test_unwritable_directory(self, foo_result, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ReportError):
            write_reports(foo_result(False), blocker / "out")

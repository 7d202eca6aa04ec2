"""JUnit XML export of assessment findings for CI pipelines."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from xml.dom import minidom
from xml.etree import ElementTree as ET

from ..models.assessment import Assessment


def export_junit_results(
    assessment: Assessment,
    output_path: Path,
    fail_on: Optional[list[str]] = None,
    suite_name: str = "ATO Compliance Assessment",
) -> dict:
    """Export an assessment's findings as JUnit XML.

    One testsuite per control family, one testcase per finding. Findings
    whose severity is in ``fail_on`` (default Critical and High) are failures.

    Returns:
        Dict with: path, total_tests, failures, passed.
    """
    fail_set = set(fail_on or ["Critical", "High"])

    testsuites = ET.Element("testsuites")
    testsuites.set("name", suite_name)
    testsuites.set("timestamp", assessment.start_time.strftime("%Y-%m-%dT%H:%M:%S"))

    total_tests = 0
    total_failures = 0

    for family, result in assessment.family_results.items():
        if not result.findings:
            continue

        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", f"{family} {result.family_name}")
        testsuite.set("tests", str(len(result.findings)))

        suite_failures = 0
        for finding in result.findings:
            total_tests += 1

            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", f"{finding.id}: {finding.title or finding.rule_id or '?'}")
            testcase.set("classname", family)
            if finding.resource_id:
                testcase.set("file", finding.resource_id)

            severity = finding.severity.value
            if severity in fail_set:
                total_failures += 1
                suite_failures += 1

                failure = ET.SubElement(testcase, "failure")
                failure.set("message", f"[{severity}] {finding.title}")
                failure.set("type", severity.lower())

                text_parts = [f"Severity: {severity}"]
                if finding.affected_controls:
                    text_parts.append(f"Controls: {', '.join(finding.affected_controls)}")
                if finding.resource_id:
                    text_parts.append(f"Resource: {finding.resource_id}")
                if finding.description:
                    text_parts.append(f"\nDescription:\n{finding.description}")
                if finding.recommendation:
                    text_parts.append(f"\nRemediation:\n{finding.recommendation}")
                failure.text = "\n".join(text_parts)

        testsuite.set("failures", str(suite_failures))
        testsuite.set("errors", "0")
        testsuite.set("skipped", "0")

    testsuites.set("tests", str(total_tests))
    testsuites.set("failures", str(total_failures))
    testsuites.set("errors", "0")
    if assessment.end_time:
        duration = (assessment.end_time - assessment.start_time).total_seconds()
        testsuites.set("time", str(round(duration, 2)))

    output_path.parent.mkdir(parents=True, exist_ok=True)

    rough = ET.tostring(testsuites, encoding="unicode")
    dom = minidom.parseString(rough)
    output_path.write_bytes(dom.toprettyxml(indent="  ", encoding="UTF-8"))

    return {
        "path": str(output_path),
        "total_tests": total_tests,
        "failures": total_failures,
        "passed": total_tests - total_failures,
    }

"""
Reporting module for permgate.

Output formats:
    - Console: Rich table with a verdict header and per-validation status
    - JSON: Structured output for programmatic consumption

Example:
    from permgate.report import generate_json_report, print_result

    print_result(result)
    print(generate_json_report(result, policy=descriptor.to_dict()))
"""

from permgate.report.console import print_result
from permgate.report.json import build_result_dict, generate_json_report

__all__ = [
    "print_result",
    "generate_json_report",
    "build_result_dict",
]

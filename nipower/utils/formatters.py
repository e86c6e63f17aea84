"""
Text formatting of NIPower results.
"""

import math
from typing import Any, Dict

__all__ = []


def _fmt(value: float, digits: int = 3) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "NA"
    return f"{value:.{digits}f}"


def _format_results(result: Dict[str, Any], summary: str = "short") -> str:
    """Render a power result as a plain-text report.

    Args:
        result: Output of ``build_power_result``.
        summary: ``"short"`` (table only) or ``"long"`` (adds settings,
            failure reasons and the Monte Carlo interval on power).
    """
    if summary not in ("short", "long"):
        raise ValueError(f"summary must be 'short' or 'long', got '{summary}'")

    model = result["model"]
    res = result["results"]
    config = model["config"]
    coverage = config["ci_coverage"]
    n_total = model["n_simulations"]

    lines = []
    lines.append(
        f"Sample sizes: F2F={config['n_f2f']}, App_Expert={config['n_app_expert']}, "
        f"App_NonExpert={config['n_app_nonexpert']}"
    )
    lines.append(
        f"Effects (d): F2F={config['d_f2f']}, App_Expert={config['d_app_expert']}, "
        f"App_NonExpert={config['d_app_nonexpert']}"
    )
    lines.append(
        f"ICC={config['icc']}, dropout={config['dropout_rate']}, "
        f"margin={config['ni_margin']}, threshold={config['prob_threshold']}"
    )
    lines.append("")

    ci_label = f"{coverage:.0%} CI"
    header = f"{'Test':<6} {'Median':>8} {'SD':>8} {ci_label:>17} {'Power':>8} {'Replicates':>12}"
    lines.append(header)
    lines.append("-" * len(header))
    for s in res["summaries"]:
        ci = f"[{_fmt(s.ci_lower)}, {_fmt(s.ci_upper)}]"
        power = "NA" if math.isnan(s.power) else f"{s.power * 100:.1f}%"
        lines.append(f"{s.hypothesis:<6} {_fmt(s.median):>8} {_fmt(s.sd):>8} {ci:>17} {power:>8} {f'{s.n_used}/{s.n_total}':>12}")

    lines.append("")
    lines.append(
        f"{res['n_simulations_used']} of {n_total} replicates contributed "
        f"({res['n_simulations_failed']} failed, status: {res['status']})"
    )
    if res.get("stop_reason"):
        lines.append(f"Run stopped early: {res['stop_reason']}")

    if summary == "long":
        lines.append("")
        lines.append("Hypotheses:")
        for name, description in model["hypotheses"].items():
            lines.append(f"  {name}: {description} < {config['ni_margin']}")
        lines.append("")
        lines.append("Power (95% Monte Carlo interval):")
        for s in res["summaries"]:
            lines.append(f"  {s.hypothesis}: {_fmt(s.power)} [{_fmt(s.power_ci_lower)}, {_fmt(s.power_ci_upper)}]")
        sampler = model["sampler"]
        lines.append("")
        lines.append(
            f"Sampler: {sampler['nuts_sampler']}, {sampler['chains']} chains x {sampler['draws']} draws "
            f"(tune {sampler['tune']}), R-hat <= {sampler['max_rhat']}, ESS >= {sampler['min_ess']}"
        )
        if res["failure_reasons"]:
            lines.append("Failure reasons:")
            for reason, count in sorted(res["failure_reasons"].items()):
                lines.append(f"  {reason}: {count}")

    return "\n".join(lines)

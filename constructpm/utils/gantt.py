from datetime import date, timedelta
from typing import List, Optional


def project_range(phases) -> Optional[tuple]:
    """Earliest start and latest end over the estimated and worst-case dates."""
    starts = [p.est_start for p in phases if p.est_start] + [p.worst_start for p in phases if p.worst_start]
    ends = [p.est_end for p in phases if p.est_end] + [p.worst_end for p in phases if p.worst_end]
    if not starts or not ends:
        return None
    return min(starts), max(ends)


def _span(start: date, end: date, range_start: date, total_days: int):
    offset = (start - range_start).days
    width = max((end - start).days + 1, 1)
    return round(offset * 100 / total_days, 2), round(width * 100 / total_days, 2)


def gantt_rows(phases) -> List[dict]:
    """
    Bar geometry for the schedule chart, as percentages of the project range.
    Milestones get a zero-width marker at their estimated end.
    """
    bounds = project_range(phases)
    if bounds is None:
        return []
    range_start, range_end = bounds
    total_days = (range_end - range_start).days + 1

    rows = []
    for phase in phases:
        left, width = _span(phase.est_start, phase.est_end, range_start, total_days)
        row = {
            "phase": phase,
            "left": left,
            "width": 0 if phase.is_milestone else width,
            "worst_left": None,
            "worst_width": None,
        }
        if phase.worst_start and phase.worst_end:
            row["worst_left"], row["worst_width"] = _span(phase.worst_start, phase.worst_end, range_start, total_days)
        rows.append(row)
    return rows


def month_ticks(phases) -> List[dict]:
    bounds = project_range(phases)
    if bounds is None:
        return []
    range_start, range_end = bounds
    total_days = (range_end - range_start).days + 1

    ticks = []
    current = range_start.replace(day=1)
    while current <= range_end:
        if current >= range_start:
            ticks.append({"label": current.strftime("%b %Y"), "left": round((current - range_start).days * 100 / total_days, 2)})
        current = (current + timedelta(days=32)).replace(day=1)
    return ticks


def earliest_start(predecessor_end: date, lag_days: int) -> date:
    """First day a successor may start: the day after its predecessor ends, plus the lag."""
    return predecessor_end + timedelta(days=1 + (lag_days or 0))


def gantt_links(rows: List[dict], dependencies) -> List[dict]:
    """
    Connectors between bars, from the end of each predecessor to the start of
    its successor. A link is flagged when the successor is scheduled to start
    before its predecessor (plus lag) allows.
    """
    by_phase = {row["phase"].id: row for row in rows}
    links = []
    for dependency in dependencies:
        before = by_phase.get(dependency.depends_on_id)
        after = by_phase.get(dependency.phase_id)
        if before is None or after is None:
            continue
        allowed = earliest_start(before["phase"].est_end, dependency.lag_days)
        links.append({
            "id": dependency.id,
            "from_name": before["phase"].name,
            "to_name": after["phase"].name,
            "from_right": round(before["left"] + before["width"], 2),
            "to_left": after["left"],
            "lag_days": dependency.lag_days or 0,
            "earliest_start": allowed,
            "conflict": after["phase"].est_start < allowed,
        })
    return links

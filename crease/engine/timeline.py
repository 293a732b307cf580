from crease.config import settings
from crease.models import BallEvent, ExtraType, MatchState, TimelineItem

_EXTRA_SUFFIX = {
    ExtraType.WIDE: "Wd",
    ExtraType.NO_BALL: "Nb",
    ExtraType.BYE: "B",
    ExtraType.LEG_BYE: "Lb",
}


def ball_label(b: BallEvent) -> tuple[str, str]:
    """Short chip text and tone for one delivery."""
    if b.is_wicket:
        return "W", "wicket"

    if b.extra_type == ExtraType.NONE:
        if b.bat_runs in (4, 6):
            return str(b.bat_runs), "boundary"
        if b.bat_runs == 0:
            return "0", "dot"
        return str(b.bat_runs), "run"

    suffix = _EXTRA_SUFFIX[b.extra_type]
    if b.extra_type == ExtraType.WIDE:
        # A plain wide is just "Wd"; runs taken on top are shown in front
        count = b.extra_runs if b.extra_runs > 1 else 0
    elif b.extra_type == ExtraType.NO_BALL:
        count = b.bat_runs
    else:
        count = b.extra_runs
    return (f"{count}{suffix}" if count else suffix), "extra"


def build_timeline(state: MatchState, limit: int | None = None) -> list[TimelineItem]:
    """The most recent deliveries of the current innings, newest first."""
    if limit is None:
        limit = settings.timeline_length

    items: list[TimelineItem] = []
    for index, b in enumerate(state.history):
        if len(items) >= limit:
            break
        if b.is_meta or b.innings != state.innings:
            continue
        label, tone = ball_label(b)
        seq = len(state.history) - index
        items.append(TimelineItem(id=f"{b.innings}-{seq}", label=label, tone=tone))
    return items

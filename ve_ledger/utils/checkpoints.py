from dataclasses import dataclass


@dataclass
class Checkpoint:
    ts: int
    value: int


def write_checkpoint(history, ts, value):
    """Append ``value`` at ``ts``, overwriting the last entry if it carries the same timestamp."""
    if history and history[-1].ts == ts:
        history[-1].value = value
    else:
        history.append(Checkpoint(ts=ts, value=value))


def prior_index(history, ts):
    """Index of the latest entry at or before ``ts``, or None if there is none."""
    if not history or history[0].ts > ts:
        return None

    # Fast path for reads at or after the latest entry
    last = len(history) - 1
    if history[last].ts <= ts:
        return last

    lower = 0
    upper = last
    while upper > lower:
        center = upper - (upper - lower) // 2
        if history[center].ts == ts:
            return center
        elif history[center].ts < ts:
            lower = center
        else:
            upper = center - 1
    return lower


def value_at(history, ts, default=0):
    index = prior_index(history, ts)
    if index is None:
        return default
    return history[index].value

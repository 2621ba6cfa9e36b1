from ve_ledger.utils.constants import MAX_TIME, SLOPE_MULTIPLIER

# Bias and slope are both kept in the SLOPE_MULTIPLIER scale, so that the global
# curve is exactly the sum of the per-lock curves. Only reads are floored to units.


def slope_of(amount):
    return (amount * SLOPE_MULTIPLIER) // MAX_TIME


def bias_of(slope, duration):
    return slope * duration


def decayed(bias, slope, elapsed):
    return max(bias - slope * elapsed, 0)


def to_units(scaled):
    return scaled // SLOPE_MULTIPLIER


def voting_power(bias, slope, elapsed):
    return to_units(decayed(bias, slope, elapsed))

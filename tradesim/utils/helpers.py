"""
Common numeric and percentage helpers for strategies and reports.

All percentages are expressed in percent units (10.0 means 10%).
"""

import numbers


def is_real_number(value: object) -> bool:
    """
    True for int, float and numpy scalar numbers; False for bool.

    Examples:
        >>> is_real_number(1.5), is_real_number(True)
        (True, False)
    """
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def add_percent(value: float, percent: float) -> float:
    """
    Increase `value` by `percent`.

    Examples:
        >>> add_percent(100.0, 10.0)
        110.0
    """
    return value + value * (percent / 100.0)


def sub_percent(value: float, percent: float) -> float:
    """
    Decrease `value` by `percent`.

    Examples:
        >>> sub_percent(100.0, 10.0)
        90.0
    """
    return value - value * (percent / 100.0)


def how_many(value: float, percent: float) -> float:
    """
    Absolute amount that `percent` of `value` represents.

    Typical use is sizing: how_many(equity, 2.0) is 2% of equity.

    Examples:
        >>> how_many(100.0, 10.0)
        10.0
    """
    return percent * (value / 100.0)


def percent_change(old: float, new: float) -> float:
    """
    Percentage change from `old` to `new`.

    Raises:
        ZeroDivisionError: If old is 0

    Examples:
        >>> percent_change(100.0, 110.0)
        10.0
    """
    return (new - old) / old * 100.0

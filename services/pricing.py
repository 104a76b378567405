from utils.errors import ValidationError

BASE_RATE_PER_HOUR = 2.50   # per hour of reservation
POWER_MULTIPLIER = 0.10     # per kW of port rating, per hour


def calculate_cost(duration_minutes, max_power_kw, base_rate_per_hour=BASE_RATE_PER_HOUR,
                   power_multiplier=POWER_MULTIPLIER) -> float:
    """
    cost = base_rate * hours + max_power_kw * power_multiplier * hours

    Rounded to cents. A port with no published rating is priced at the base rate.
    """
    if duration_minutes is None or duration_minutes < 0:
        raise ValidationError("Duration must be a non-negative number of minutes")
    power = float(max_power_kw or 0.0)
    if power < 0:
        raise ValidationError("Port power rating cannot be negative")

    hours = duration_minutes / 60.0
    base_cost = base_rate_per_hour * hours
    power_cost = power * power_multiplier * hours
    return round(base_cost + power_cost, 2)

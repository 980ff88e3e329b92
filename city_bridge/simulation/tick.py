"""Default single-step transition used when the host injects none."""

from city_bridge.models.world import World

HOURS_PER_DAY = 24
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12


def simulate_tick(world: World) -> World:
    """
    Advance the calendar by one hour, in place, and return the world.

    Growth, finance and traffic belong to the host simulation; this step
    only moves the clock so the bridge can run without one.
    """
    world.tick += 1
    world.hour += 1
    if world.hour >= HOURS_PER_DAY:
        world.hour = 0
        world.day += 1
        if world.day > DAYS_PER_MONTH:
            world.day = 1
            world.month += 1
            if world.month > MONTHS_PER_YEAR:
                world.month = 1
                world.year += 1
    return world

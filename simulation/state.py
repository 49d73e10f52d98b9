class FieldSnapshot:
    """Read-only copy of the particle pool at one instant. Safe to serialize later."""
    __slots__ = ("positions", "velocities", "color_classes")

    def __init__(self, positions, velocities, color_classes):
        for array in (positions, velocities, color_classes):
            array.flags.writeable = False
        self.positions = positions
        self.velocities = velocities
        self.color_classes = color_classes

    def __len__(self):
        return len(self.positions)

    def positions_to_list(self):
        return [{"x": x, "y": y} for x, y in self.positions.tolist()]

    def particles_to_list(self):
        return [
            {"x": x, "y": y, "vx": vx, "vy": vy, "colorClass": c}
            for (x, y), (vx, vy), c in zip(self.positions.tolist(), self.velocities.tolist(),
                                           self.color_classes.tolist())
        ]


class ClockMetrics:
    __slots__ = ("tick", "simulation_time", "last_tick_ms", "avg_tick_ms")

    def __init__(self, tick, simulation_time, last_tick_ms, avg_tick_ms):
        self.tick = tick
        self.simulation_time = simulation_time
        self.last_tick_ms = last_tick_ms
        self.avg_tick_ms = avg_tick_ms

    def to_dict(self):
        return {
            "tick": self.tick,
            "simulation_time_ms": self.simulation_time,
            "last_tick_ms": round(self.last_tick_ms, 3),
            "avg_tick_ms": round(self.avg_tick_ms, 3),
        }

import json
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "config.json"


class SimulationConfig:
    __slots__ = ("particle_count", "particle_spread", "initial_speed", "velocity_damping",
                 "gravity_strength", "update_rate", "prism_radius", "min_particles",
                 "max_particles", "seed")

    def __init__(self, particle_count=2000, particle_spread=800.0, initial_speed=5.0,
                 velocity_damping=0.98, gravity_strength=1.0, update_rate=30, prism_radius=50.0,
                 min_particles=500, max_particles=10000, seed=None):
        self.min_particles = min_particles
        self.max_particles = max_particles
        self.particle_count = self.clamp_particle_count(particle_count)
        self.particle_spread = particle_spread
        self.initial_speed = initial_speed
        self.velocity_damping = velocity_damping
        self.gravity_strength = gravity_strength
        self.update_rate = update_rate
        self.prism_radius = prism_radius
        self.seed = seed

    @property
    def tick_interval(self):
        """Physics period in seconds."""
        return 1.0 / self.update_rate

    def clamp_particle_count(self, count):
        return max(self.min_particles, min(self.max_particles, int(count)))

    def replace(self, **changes):
        values = {name: getattr(self, name) for name in self.__slots__}
        values.update(changes)
        return SimulationConfig(**values)


class PlayerConfig:
    """Defaults for a newly connected gravity well."""
    __slots__ = ("gravity_multiplier", "lensing_strength", "prism_strength", "prism_dispersion")

    def __init__(self, gravity_multiplier=1.5, lensing_strength=3.0, prism_strength=2.0,
                 prism_dispersion=3.0):
        self.gravity_multiplier = gravity_multiplier
        self.lensing_strength = lensing_strength
        self.prism_strength = prism_strength
        self.prism_dispersion = prism_dispersion


class BroadcastConfig:
    __slots__ = ("interval", "full_update_interval", "outbox_size")

    def __init__(self, interval=0.05, full_update_interval=1.0, outbox_size=32):
        self.interval = interval
        self.full_update_interval = full_update_interval
        self.outbox_size = outbox_size


class ServerConfig:
    __slots__ = ("host", "port", "max_players")

    def __init__(self, host="0.0.0.0", port=3001, max_players=20):
        self.host = host
        self.port = port
        self.max_players = max_players


class LoggingConfig:
    __slots__ = ("level", "file", "crash_file")

    def __init__(self, level="INFO", file="logs/lensing.log", crash_file="logs/crash.log"):
        self.level = level
        self.file = file
        self.crash_file = crash_file


class Config:
    __slots__ = ("simulation", "players", "broadcast", "server", "logging")

    def __init__(self, simulation=None, players=None, broadcast=None, server=None, logging=None):
        self.simulation = simulation or SimulationConfig()
        self.players = players or PlayerConfig()
        self.broadcast = broadcast or BroadcastConfig()
        self.server = server or ServerConfig()
        self.logging = logging or LoggingConfig()

    @classmethod
    def from_dict(cls, d):
        return cls(
            SimulationConfig(**d.get("simulation", {})),
            PlayerConfig(**d.get("players", {})),
            BroadcastConfig(**d.get("broadcast", {})),
            ServerConfig(**d.get("server", {})),
            LoggingConfig(**d.get("logging", {})),
        )


def load_config(path=None):
    config_path = Path(path) if path else _DEFAULT_CONFIG

    if not config_path.exists():
        return Config()

    with open(config_path) as file:
        return Config.from_dict(json.load(file))

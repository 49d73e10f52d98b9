"""Player gravity wells and the registry the physics tick reads from."""

import itertools
from types import MappingProxyType

from internal.logging import get_logger

# wire name -> attribute name
WIRE_FIELDS = {
    "gravityStrength": "gravity_strength",
    "lensingStrength": "lensing_strength",
    "prismRadius": "prism_radius",
    "prismStrength": "prism_strength",
    "prismDispersion": "prism_dispersion",
}


class GravityWell:
    """One player's attractor. Every field is independently overridable."""
    __slots__ = ("x", "y", "gravity_strength", "lensing_strength", "prism_radius",
                 "prism_strength", "prism_dispersion")

    def __init__(self, x, y, gravity_strength, lensing_strength, prism_radius, prism_strength,
                 prism_dispersion):
        self.x = x
        self.y = y
        self.gravity_strength = gravity_strength
        self.lensing_strength = lensing_strength
        self.prism_radius = prism_radius
        self.prism_strength = prism_strength
        self.prism_dispersion = prism_dispersion

    def apply(self, partial):
        """Field-wise merge of a wire-form partial ({position, gravityStrength, ...})."""
        position = partial.get("position")
        if position is not None:
            self.x = position.get("x", self.x)
            self.y = position.get("y", self.y)
        for wire_name, attr in WIRE_FIELDS.items():
            value = partial.get(wire_name)
            if value is not None:
                setattr(self, attr, value)

    def copy(self):
        return GravityWell(self.x, self.y, self.gravity_strength, self.lensing_strength,
                           self.prism_radius, self.prism_strength, self.prism_dispersion)

    def to_dict(self):
        data = {"position": {"x": self.x, "y": self.y}}
        data.update({wire_name: getattr(self, attr) for wire_name, attr in WIRE_FIELDS.items()})
        return data


class PlayerRegistry:
    """Maps player id to GravityWell.

    Only the owning connection ever writes a given record, and ticks run to
    completion on one event loop, so no lock is taken here.
    """

    def __init__(self, sim_config, player_config):
        self.sim_config = sim_config
        self.player_config = player_config
        self._players = {}
        self._ids = itertools.count(1)
        self._log = get_logger()

    def __len__(self):
        return len(self._players)

    def __contains__(self, player_id):
        return player_id in self._players

    def next_id(self):
        """Monotonic ids, never reused for the lifetime of the registry."""
        return next(self._ids)

    def defaults(self):
        return GravityWell(
            x=0.0,
            y=0.0,
            gravity_strength=self.sim_config.gravity_strength * self.player_config.gravity_multiplier,
            lensing_strength=self.player_config.lensing_strength,
            prism_radius=self.sim_config.prism_radius,
            prism_strength=self.player_config.prism_strength,
            prism_dispersion=self.player_config.prism_dispersion,
        )

    def add(self, player_id, overrides=None):
        well = self.defaults()
        if overrides:
            well.apply(overrides)
        self._players[player_id] = well
        return well

    def remove(self, player_id):
        return self._players.pop(player_id, None) is not None

    def get(self, player_id):
        return self._players.get(player_id)

    def update_position(self, player_id, position):
        well = self.get(player_id)
        if well is None:
            self._log.debug("stale position update", player_id=player_id)
            return False
        well.apply({"position": position})
        return True

    def update_params(self, player_id, partial):
        well = self.get(player_id)
        if well is None:
            self._log.debug("stale params update", player_id=player_id)
            return False
        well.apply(partial)
        return True

    def ids(self):
        return sorted(self._players)

    def snapshot(self):
        """Read-only id -> well mapping of copies, frozen at the moment of the call."""
        return MappingProxyType({player_id: well.copy() for player_id, well in self._players.items()})

    def to_dict(self):
        return {str(player_id): well.to_dict() for player_id, well in sorted(self._players.items())}

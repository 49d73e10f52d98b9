import asyncio
import time

from communication import protocol
from core.errors import ChannelError, ProtocolError
from internal.logging import get_logger


class Connection:
    """One client channel. Frames are queued here and written by pump()."""
    __slots__ = ("player_id", "socket", "outbox", "created_at", "sent", "dropped", "log")

    def __init__(self, player_id, socket, outbox_size):
        self.player_id = player_id
        self.socket = socket
        self.outbox = asyncio.Queue(maxsize=outbox_size)
        self.created_at = time.time()
        self.sent = 0
        self.dropped = 0
        self.log = get_logger(player_id=player_id)

    def post(self, text):
        try:
            self.outbox.put_nowait(text)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False


class ConnectionHub:
    """Open channels keyed by player id, and the inbound message dispatcher.

    The channel list is copy-on-write, so broadcast iterates a stable list
    even if a handler connects or disconnects someone mid-loop.
    """

    def __init__(self, registry, clock, outbox_size=32, journal=None):
        self.registry = registry
        self.clock = clock
        self.outbox_size = outbox_size
        self.journal = journal
        self._log = get_logger()
        self._connections = {}
        self._connections_snapshot = []
        self.total_frames = 0
        self.total_delivered = 0
        self.total_failed = 0

    def __len__(self):
        return len(self._connections)

    def _refresh(self):
        self._connections_snapshot = list(self._connections.values())

    def _journal(self, kind, data):
        if self.journal is not None:
            self.journal.try_log(kind, data)

    # -- lifecycle -------------------------------------------------------

    def connect(self, socket):
        """Register a new channel: id frame, then a full state, then the player list to all."""
        player_id = self.registry.next_id()
        self.registry.add(player_id)
        connection = Connection(player_id, socket, self.outbox_size)

        self.send(connection, protocol.id_frame(player_id))
        self.send(connection, self.full_state())

        self._connections[player_id] = connection
        self._refresh()
        self._log.info("player connected", player_id=player_id, players=len(self._connections))
        self._journal("connect", {"player_id": player_id})

        self.broadcast(protocol.players_frame(self.registry.ids()))
        return connection

    def disconnect(self, connection):
        player_id = connection.player_id
        if self._connections.pop(player_id, None) is None:
            return False
        self._refresh()
        self.registry.remove(player_id)
        self._log.info("player disconnected", player_id=player_id, players=len(self._connections))
        self._journal("disconnect", {"player_id": player_id, "sent": connection.sent,
                                     "dropped": connection.dropped})

        self.broadcast(protocol.players_frame(self.registry.ids()))
        return True

    # -- inbound ---------------------------------------------------------

    async def handle(self, connection, raw):
        """Apply one inbound frame from connection. Malformed input is logged and dropped."""
        player_id = connection.player_id
        try:
            msg_type, message = protocol.parse_message(raw, player_id=player_id)
        except ProtocolError as exc:
            connection.log.warn("malformed message", error=exc.cause or exc, error_id=exc.error_id,
                                msg_type=exc.context.get("msg_type"))
            self._journal("malformed", {"error_id": exc.error_id, **exc.context})
            return

        if message is None:
            connection.log.debug("ignored message", msg_type=msg_type)
            return

        if msg_type == protocol.UPDATE_POSITION:
            position = message.position.model_dump()
            if self.registry.update_position(player_id, position):
                self.broadcast(protocol.player_update_frame(player_id, {"position": position}),
                               exclude=connection)

        elif msg_type == protocol.UPDATE_PARAMS:
            params = message.params.model_dump(exclude_none=True)
            if params and self.registry.update_params(player_id, params):
                self.broadcast(protocol.player_update_frame(player_id, params), exclude=connection)

        elif msg_type == protocol.SET_PARTICLE_COUNT:
            await self.set_particle_count(message.count, requested_by=player_id)

    async def set_particle_count(self, count, requested_by=None):
        """Clamp, reinitialise the field, and tell everyone. Returns the applied count."""
        config = self.clock.config
        applied = config.clamp_particle_count(count)
        new_config = config.replace(particle_count=applied)
        self.registry.sim_config = new_config
        await self.clock.reset(new_config)

        self._log.info("particle count changed", requested=count, applied=applied, player_id=requested_by)
        self._journal("particle_count", {"requested": count, "applied": applied, "player_id": requested_by})
        self.broadcast(protocol.system_frame(f"Particle count changed to {applied}"))
        return applied

    # -- outbound --------------------------------------------------------

    def full_state(self):
        return protocol.full_state_frame(
            self.clock.field.get_snapshot(),
            self.registry.to_dict(),
            self.clock.simulation_time,
            protocol.build_metrics(self.clock, len(self.registry)),
        )

    def _post(self, connection, text):
        try:
            delivered = connection.post(text)
        except Exception as exc:
            delivered = False
            connection.log.warn("post failed", error=exc)
        if delivered:
            self.total_delivered += 1
            return True
        self.total_failed += 1
        if connection.dropped % 100 == 1:
            error = ChannelError("outbox full, frame dropped", player_id=connection.player_id)
            connection.log.warn(str(error), dropped=connection.dropped)
        return False

    def send(self, connection, frame):
        self.total_frames += 1
        return self._post(connection, protocol.encode(frame))

    def broadcast(self, frame, exclude=None):
        """Serialize once and queue for every open channel. Returns the delivered count."""
        text = protocol.encode(frame)
        self.total_frames += 1
        delivered = 0
        for connection in self._connections_snapshot:
            if connection is exclude:
                continue
            if self._post(connection, text):
                delivered += 1
        return delivered

    async def pump(self, connection):
        """Write queued frames to the socket until it fails or the task is cancelled."""
        while True:
            text = await connection.outbox.get()
            try:
                await connection.socket.send_text(text)
            except Exception as exc:
                self.total_failed += 1
                error = ChannelError("send failed", player_id=connection.player_id, cause=exc)
                connection.log.warn(str(error), error=exc)
                return
            connection.sent += 1

    # -- diagnostics -----------------------------------------------------

    def get_stats(self):
        return {
            "connection_count": len(self._connections_snapshot),
            "total_frames": self.total_frames,
            "total_delivered": self.total_delivered,
            "total_failed": self.total_failed,
        }

    def get_connection_info(self):
        return [
            {
                "player_id": connection.player_id,
                "queued": connection.outbox.qsize(),
                "sent": connection.sent,
                "dropped": connection.dropped,
            } for connection in self._connections_snapshot
        ]

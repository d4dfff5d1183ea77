from __future__ import annotations
import json
import aiosqlite
from datetime import datetime
from typing import Any, Dict, List, Optional
from ..core.timeutil import now_utc, to_iso
from ..domain.models import Action, ActionKind, AirQuality, HvacSnapshot, Reading

_READING_COLUMNS = (
    "id,timestamp,source,temperature,humidity,voc,co2,pm25,radon,"
    "hvac_status,fan_running,mode,setpoint_heat,setpoint_cool"
)
_ACTION_COLUMNS = "id,timestamp,action,reason,avg_temp,target_temp"


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _row_to_reading(row) -> Reading:
    (rid, ts, source, temp, humid, voc, co2, pm25, radon,
     hvac_status, fan_running, mode, sp_heat, sp_cool) = row

    air = None
    if any(v is not None for v in (voc, co2, pm25, radon)):
        air = AirQuality(voc=voc, co2=co2, pm25=pm25, radon=radon)

    hvac = None
    if any(v is not None for v in (hvac_status, fan_running, mode, sp_heat, sp_cool)):
        hvac = HvacSnapshot(
            hvac_status=hvac_status,
            fan_running=None if fan_running is None else bool(fan_running),
            mode=mode,
            setpoint_heat=sp_heat,
            setpoint_cool=sp_cool,
        )

    return Reading(
        id=rid,
        timestamp=datetime.fromisoformat(ts),
        source=source,
        temperature=temp,
        humidity=humid,
        air=air,
        hvac=hvac,
    )


def _row_to_action(row) -> Action:
    rid, ts, action, reason, avg, target = row
    return Action(
        id=rid,
        timestamp=datetime.fromisoformat(ts),
        action=ActionKind(action),
        reason=reason,
        avg_temp=avg,
        target_temp=target,
    )


class SQLiteRepository:
    """Append-only readings/actions history plus the current-state table."""

    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS readings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    source TEXT NOT NULL,
                    temperature REAL,
                    humidity REAL,
                    voc REAL,
                    co2 REAL,
                    pm25 REAL,
                    radon REAL,
                    hvac_status TEXT,
                    fan_running INTEGER,
                    mode TEXT,
                    setpoint_heat REAL,
                    setpoint_cool REAL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS actions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    action TEXT NOT NULL,
                    reason TEXT,
                    avg_temp REAL,
                    target_temp REAL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS state (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TEXT
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_timestamp ON readings(timestamp)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_source ON readings(source)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_actions_timestamp ON actions(timestamp)")
            await db.commit()

    async def save_reading(self, r: Reading) -> None:
        air = r.air or AirQuality()
        hvac = r.hvac or HvacSnapshot()
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO readings(timestamp,source,temperature,humidity,voc,co2,pm25,radon,"
                "hvac_status,fan_running,mode,setpoint_heat,setpoint_cool) "
                "VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?)",
                (
                    to_iso(r.timestamp),
                    r.source,
                    r.temperature,
                    r.humidity,
                    air.voc,
                    air.co2,
                    air.pm25,
                    air.radon,
                    hvac.hvac_status,
                    None if hvac.fan_running is None else int(hvac.fan_running),
                    hvac.mode,
                    hvac.setpoint_heat,
                    hvac.setpoint_cool,
                ),
            )
            await db.commit()

    async def save_action(self, a: Action) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO actions(timestamp,action,reason,avg_temp,target_temp) VALUES (?,?,?,?,?)",
                (to_iso(a.timestamp), a.action.value, a.reason, a.avg_temp, a.target_temp),
            )
            await db.commit()

    async def set_state(self, key: str, value: Any) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO state(key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                (key, json.dumps(value, default=str), to_iso(now_utc())),
            )
            await db.commit()

    async def set_state_batch(self, updates: Dict[str, Any]) -> None:
        now = to_iso(now_utc())
        async with aiosqlite.connect(self._path) as db:
            for key, value in updates.items():
                await db.execute(
                    "INSERT INTO state(key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                    (key, json.dumps(value, default=str), now),
                )
            await db.commit()

    async def get_state_value(self, key: str) -> Any:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute("SELECT value FROM state WHERE key = ?", (key,))
            row = await cur.fetchone()
        if row is None:
            return None
        return _decode(row[0])

    async def get_current_state(self) -> Dict[str, Dict[str, Any]]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute("SELECT key, value, updated_at FROM state")
            rows = await cur.fetchall()
        return {k: {"value": _decode(v), "updated_at": u} for k, v, u in rows}

    async def get_readings(self, limit: int = 50) -> List[Reading]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                f"SELECT {_READING_COLUMNS} FROM readings ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            rows = await cur.fetchall()
        return [_row_to_reading(row) for row in rows]

    async def get_readings_since(self, since: datetime) -> List[Reading]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                f"SELECT {_READING_COLUMNS} FROM readings WHERE timestamp >= ? ORDER BY id DESC",
                (to_iso(since),),
            )
            rows = await cur.fetchall()
        return [_row_to_reading(row) for row in rows]

    async def get_actions(self, limit: int = 20) -> List[Action]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                f"SELECT {_ACTION_COLUMNS} FROM actions ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            rows = await cur.fetchall()
        return [_row_to_action(row) for row in rows]

    async def get_actions_since(self, since: datetime) -> List[Action]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                f"SELECT {_ACTION_COLUMNS} FROM actions WHERE timestamp >= ? ORDER BY id DESC",
                (to_iso(since),),
            )
            rows = await cur.fetchall()
        return [_row_to_action(row) for row in rows]

# -*- coding: utf-8 -*-
"""
运行时配置模块
烧杯尺寸与反应模拟参数，带校验
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, Any, Optional
import math

from config import (
    ATOM_COUNT,
    ATOM_RADIUS,
    SPEED,
    REACTION_DIST_FACTOR,
    TYPE_LABEL_A,
    TYPE_LABEL_B,
    STATS_INTERVAL,
    FPS,
    MAX_PARTICLE_COUNT,
)


class ConfigurationError(ValueError):
    """非法配置：在 initialize 时拒绝，从不静默钳制"""


def _finite(value: float) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ============================================================================
# 烧杯尺寸
# ============================================================================

@dataclass(frozen=True)
class Bounds:
    """
    模拟区域（矩形），通常来自视口尺寸

    属性:
        width: 宽度
        height: 高度
    """
    width: float
    height: float

    def validate(self, radius: float = 0.0) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if not _finite(value) or value <= 0:
                raise ConfigurationError(f"bounds.{name} must be a finite positive number, got {value!r}")
            if value < 2 * radius:
                raise ConfigurationError(
                    f"bounds.{name}={value} cannot fit a particle of radius {radius}"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bounds":
        try:
            return cls(width=float(data["width"]), height=float(data["height"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid bounds {data!r}: {exc}") from exc


# ============================================================================
# 模拟配置
# ============================================================================

# 前端字段转换：只接受语义上精确的值，不做截断或真值猜测

def _to_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                value = float(value)
            except ValueError:
                raise ConfigurationError(f"{key} must be an integer, got {value!r}") from None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ConfigurationError(f"{key} must be an integer, got {value!r}")


def _to_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise ConfigurationError(f"{key} must be a number, got {value!r}")


def _to_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be true or false, got {value!r}")
    return value


def _to_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string, got {value!r}")
    return value


# camelCase (前端) -> (字段名, 转换函数)
_WIRE_KEYS = {
    "particleCount": ("particle_count", _to_int),
    "particleRadius": ("particle_radius", _to_float),
    "speedScale": ("speed_scale", _to_float),
    "reactionDistance": ("reaction_distance", _to_float),
    "typeLabelA": ("type_label_a", _to_str),
    "typeLabelB": ("type_label_b", _to_str),
    "autostart": ("autostart", _to_bool),
    "statsInterval": ("stats_interval", _to_int),
    "seed": ("seed", _to_int),
    "fps": ("fps", _to_int),
}


@dataclass
class SimulationConfig:
    """
    反应烧杯配置

    属性:
        particle_count: 粒子数 N（reset 时固定）
        particle_radius: 粒子半径
        speed_scale: 初始速度分量取自 [-speed_scale/2, +speed_scale/2]
        reaction_distance: 接触判定的中心距阈值，None 表示 2.5 × 半径
        type_label_a / type_label_b: 仅用于显示，不影响物理
        autostart: initialize/reset 之后直接进入 Running
        stats_interval: 每 K 个 tick 重新统计一次
        seed: 随机种子（None 表示不可复现）
        fps: 实时循环帧率
    """
    particle_count: int = ATOM_COUNT
    particle_radius: float = ATOM_RADIUS
    speed_scale: float = SPEED
    reaction_distance: Optional[float] = None
    type_label_a: str = TYPE_LABEL_A
    type_label_b: str = TYPE_LABEL_B
    autostart: bool = False
    stats_interval: int = STATS_INTERVAL
    seed: Optional[int] = None
    fps: int = FPS

    def effective_reaction_distance(self) -> float:
        if self.reaction_distance is None:
            return self.particle_radius * REACTION_DIST_FACTOR
        return self.reaction_distance

    def validate(self) -> None:
        """校验配置，非法时抛出 ConfigurationError"""
        if isinstance(self.particle_count, bool) or not isinstance(self.particle_count, int):
            raise ConfigurationError(f"particle_count must be an integer, got {self.particle_count!r}")
        if self.particle_count < 0:
            raise ConfigurationError(f"particle_count must be >= 0, got {self.particle_count}")
        if self.particle_count > MAX_PARTICLE_COUNT:
            raise ConfigurationError(
                f"particle_count must be <= {MAX_PARTICLE_COUNT}, got {self.particle_count}"
            )
        if not _finite(self.particle_radius) or self.particle_radius < 0:
            raise ConfigurationError(f"particle_radius must be finite and >= 0, got {self.particle_radius!r}")
        if not _finite(self.speed_scale) or self.speed_scale < 0:
            raise ConfigurationError(f"speed_scale must be finite and >= 0, got {self.speed_scale!r}")
        distance = self.effective_reaction_distance()
        if not _finite(distance) or distance <= 0:
            raise ConfigurationError(f"reaction_distance must be finite and > 0, got {distance!r}")
        if isinstance(self.stats_interval, bool) or not isinstance(self.stats_interval, int) or self.stats_interval < 1:
            raise ConfigurationError(f"stats_interval must be an integer >= 1, got {self.stats_interval!r}")
        if isinstance(self.fps, bool) or not isinstance(self.fps, int) or self.fps < 1:
            raise ConfigurationError(f"fps must be an integer >= 1, got {self.fps!r}")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0):
            raise ConfigurationError(f"seed must be None or an integer >= 0, got {self.seed!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "particleCount": self.particle_count,
            "particleRadius": self.particle_radius,
            "speedScale": self.speed_scale,
            "reactionDistance": self.effective_reaction_distance(),
            "typeLabelA": self.type_label_a,
            "typeLabelB": self.type_label_b,
            "autostart": self.autostart,
            "statsInterval": self.stats_interval,
            "seed": self.seed,
            "fps": self.fps,
        }

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        按前端字段更新配置

        先在副本上校验，全部合法才写回；未知字段忽略。
        """
        changes = {}
        for key, value in data.items():
            if key not in _WIRE_KEYS:
                continue
            name, convert = _WIRE_KEYS[key]
            if value is None and name in ("reaction_distance", "seed"):
                changes[name] = None
                continue
            changes[name] = convert(key, value)

        candidate = replace(self, **changes)
        candidate.validate()
        for f in fields(self):
            setattr(self, f.name, getattr(candidate, f.name))

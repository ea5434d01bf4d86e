# -*- coding: utf-8 -*-
"""
二进制数据编码模块
将粒子快照编码为紧凑的二进制帧，供 Socket.IO 推送

格式说明：
- 头部 5 字节: 消息类型 uint8 + 粒子数 uint32
- 每个粒子占用7字节
- id: uint16 (2字节) - 粒子标识
- x: float16 (2字节) - 归一化坐标 [0, 1]
- y: float16 (2字节) - 归一化坐标 [0, 1]
- type: uint8 (1字节) - 粒子类型

使用方法：
    encoder = BinaryEncoder(width=800, height=320)
    binary_data = encoder.encode_particles(store.ids, store.pos, store.types)
"""

import struct
import numpy as np

HEADER_FORMAT = '<BI'
PARTICLE_FORMAT = '<HeeB'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
PARTICLE_SIZE = struct.calcsize(PARTICLE_FORMAT)
MAX_WIRE_ID = 0xFFFF


class BinaryEncoder:
    """
    粒子快照二进制编码器

    设计原则：
    - 模块化：独立于服务器逻辑
    - 紧凑：每粒子7字节 vs JSON约50字节
    """

    # 消息类型常量
    MSG_PARTICLES = 0x01

    def __init__(self, width: float, height: float):
        self.width = float(width)
        self.height = float(height)
        self._width_inv = 1.0 / self.width
        self._height_inv = 1.0 / self.height

    def encode_particles(self,
                         ids: np.ndarray,
                         positions: np.ndarray,
                         types: np.ndarray) -> bytes:
        """
        将粒子数据编码为二进制格式

        参数:
            ids: (N,) 粒子标识
            positions: (N, 2) 粒子位置
            types: (N,) 粒子类型

        返回:
            bytes: [msg_type(1) + count(4) + particles(count * 7)]
        """
        n = len(ids)
        header = struct.pack(HEADER_FORMAT, self.MSG_PARTICLES, n)
        if n == 0:
            return header

        # 归一化坐标到 [0, 1]
        norm_x = np.clip(positions[:, 0] * self._width_inv, 0.0, 1.0).astype(np.float16)
        norm_y = np.clip(positions[:, 1] * self._height_inv, 0.0, 1.0).astype(np.float16)
        if ids.min() < 0 or ids.max() > MAX_WIRE_ID:
            raise ValueError(f"particle ids must fit in uint16, got range [{ids.min()}, {ids.max()}]")
        ids_u16 = ids.astype(np.uint16)
        types_u8 = types.astype(np.uint8)

        particle_data = bytearray(n * PARTICLE_SIZE)
        for i in range(n):
            struct.pack_into(PARTICLE_FORMAT, particle_data, i * PARTICLE_SIZE,
                             int(ids_u16[i]), float(norm_x[i]), float(norm_y[i]),
                             int(types_u8[i]))

        return header + bytes(particle_data)

    def encode_store(self, store) -> bytes:
        return self.encode_particles(store.ids, store.pos, store.types)


class BinaryDecoder:
    """
    前端使用的二进制解码器（JavaScript版本在前端实现）
    此类用于测试
    """

    @staticmethod
    def decode_particles(data: bytes) -> list:
        """解码二进制粒子数据（测试用）"""
        if len(data) < HEADER_SIZE:
            return []

        msg_type, count = struct.unpack(HEADER_FORMAT, data[:HEADER_SIZE])
        if msg_type != BinaryEncoder.MSG_PARTICLES:
            return []

        particles = []
        for i in range(count):
            offset = HEADER_SIZE + i * PARTICLE_SIZE
            pid, x, y, typ = struct.unpack(PARTICLE_FORMAT, data[offset:offset + PARTICLE_SIZE])
            particles.append({
                'id': int(pid),
                'x': float(x),
                'y': float(y),
                'type': int(typ),
            })

        return particles

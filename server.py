# -*- coding: utf-8 -*-
"""
Flask + Socket.IO 服务端
提供浏览器前端与反应烧杯模拟之间的通信桥梁
"""

import logging
import socket
import sys
import threading
from dataclasses import replace
from typing import Optional, Dict, Any

from flask import Flask, jsonify
from flask_socketio import SocketIO, emit

from binary_encoder import BinaryEncoder
from config import BEAKER_WIDTH, BEAKER_HEIGHT, SERVER_PORT, SERVER_FPS
from log_setup import setup_logging
from runtime_config import Bounds, ConfigurationError, SimulationConfig
from simulation import RunHandle, initialize

logger = logging.getLogger(__name__)


# ============================================================================
# Flask 应用
# ============================================================================

app = Flask(__name__)
app.config['SECRET_KEY'] = 'reaction-beaker-secret'
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

# 全局状态
runtime_config = SimulationConfig(fps=SERVER_FPS)
current_bounds = Bounds(BEAKER_WIDTH, BEAKER_HEIGHT)
run_handle: Optional[RunHandle] = None
handle_lock = threading.Lock()

# 实时推送循环（测试中可关闭，由客户端手动 tick）
REALTIME = True


def push_frame(handle: RunHandle) -> None:
    """帧回调：元数据走 JSON，粒子走二进制通道"""
    state, store = handle.frame()
    encoder = BinaryEncoder(handle.bounds.width, handle.bounds.height)
    socketio.emit('state_update', state)
    socketio.emit('particles', encoder.encode_store(store))


def replace_run() -> RunHandle:
    """关闭旧的 Run，按当前配置与尺寸新建一个"""
    global run_handle

    with handle_lock:
        if run_handle is not None:
            run_handle.close()
        # 复制配置，避免后续 update_config 修改正在运行的 Run
        run_handle = initialize(current_bounds, replace(runtime_config))
        if REALTIME:
            run_handle.run_realtime(on_frame=push_frame)
        return run_handle


def get_run() -> RunHandle:
    if run_handle is None or run_handle.closed:
        return replace_run()
    return run_handle


def config_payload() -> Dict[str, Any]:
    return {
        "config": runtime_config.to_dict(),
        "bounds": current_bounds.to_dict(),
    }


def state_payload(handle: RunHandle, with_particles: bool = False) -> Dict[str, Any]:
    state = handle.get_state()
    if with_particles:
        state["particles"] = handle.snapshot_particles()
    return state


# ============================================================================
# 路由
# ============================================================================

@app.route('/api/config')
def get_config():
    """获取当前配置"""
    return jsonify(config_payload())


@app.route('/api/state')
def get_state():
    """获取完整状态（含粒子）"""
    return jsonify(state_payload(get_run(), with_particles=True))


# ============================================================================
# Socket.IO 事件处理
# ============================================================================

@socketio.on('connect')
def handle_connect():
    """客户端连接：每次连接都从干净的 Run 开始"""
    logger.info('[Server] Client connected')
    handle = replace_run()
    emit('config', config_payload())
    emit('state_update', state_payload(handle, with_particles=True))


@socketio.on('disconnect')
def handle_disconnect(*args):
    """客户端断开：暂停模拟"""
    if run_handle is not None:
        run_handle.pause()
    logger.info('[Server] Client disconnected - simulation paused')


@socketio.on('start')
def handle_start():
    """启动模拟"""
    handle = get_run()
    handle.start()
    emit('status', {'state': handle.state.value}, broadcast=True)
    logger.info('[Server] Simulation started')


@socketio.on('pause')
def handle_pause():
    """暂停模拟"""
    handle = get_run()
    handle.pause()
    emit('status', {'state': handle.state.value}, broadcast=True)
    logger.info('[Server] Simulation paused')


@socketio.on('reset')
def handle_reset():
    """重置模拟：丢弃全部粒子，重新生成"""
    handle = get_run()
    handle.reset()
    emit('status', {'state': handle.state.value}, broadcast=True)
    # 发送重置确认，前端收到后才清空状态
    emit('reset_ack', state_payload(handle, with_particles=True), broadcast=True)
    logger.info('[Server] Simulation reset')


@socketio.on('tick')
def handle_tick():
    """单步推进（前端自行驱动节奏时使用）"""
    handle = get_run()
    handle.tick()
    emit('state_update', state_payload(handle, with_particles=True))


@socketio.on('resize')
def handle_resize(data: Dict[str, Any]):
    """视口尺寸变化：只能重新 initialize，不保留粒子位置"""
    global current_bounds

    try:
        bounds = Bounds.from_dict(data)
        bounds.validate(runtime_config.particle_radius)
    except ConfigurationError as exc:
        emit('error', {'message': str(exc)})
        logger.warning('[Server] Rejected resize: %s', exc)
        return

    current_bounds = bounds
    handle = replace_run()
    emit('config', config_payload(), broadcast=True)
    emit('reset_ack', state_payload(handle, with_particles=True), broadcast=True)
    logger.info('[Server] Beaker resized to %gx%g', bounds.width, bounds.height)


@socketio.on('update_config')
def handle_update_config(data: Dict[str, Any]):
    """更新运行时配置，新配置总是开启一个新的 Run"""
    global runtime_config

    # 先在副本上校验，失败时当前配置保持不变
    candidate = replace(runtime_config)
    try:
        candidate.update_from_dict(data)
        current_bounds.validate(candidate.particle_radius)
    except ConfigurationError as exc:
        emit('error', {'message': str(exc)})
        logger.warning('[Server] Rejected config update: %s', exc)
        return

    runtime_config = candidate
    handle = replace_run()
    emit('config', config_payload(), broadcast=True)
    emit('reset_ack', state_payload(handle, with_particles=True), broadcast=True)
    logger.info('[Server] Config updated: %s', list(data.keys()))


# ============================================================================
# 主入口
# ============================================================================

def is_port_in_use(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind(('0.0.0.0', port))
            return False
        except OSError:
            return True


if __name__ == '__main__':
    setup_logging('INFO')

    if is_port_in_use(SERVER_PORT):
        logger.error('[Server] Port %d is already in use; is another server running?', SERVER_PORT)
        sys.exit(1)

    logger.info('[Server] Reaction beaker at http://localhost:%d', SERVER_PORT)

    # 预热物理引擎 (触发 Numba JIT 编译)
    logger.info('[Server] Warming up physics kernels...')
    with initialize(current_bounds, replace(runtime_config)) as warmup:
        for _ in range(5):
            warmup.tick()
    logger.info('[Server] Warm-up done')

    socketio.run(app, host='0.0.0.0', port=SERVER_PORT, debug=False)

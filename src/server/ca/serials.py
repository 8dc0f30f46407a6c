"""
按 CA 证书分配叶子证书序列号。

counter 策略下，每张 CA 证书（以其 SHA-256 指纹标识）拥有独立的递增计数器，
持久化在 serial_state_dir/<指纹>.serial 中；random 策略直接使用随机序列号。
"""

import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from loguru import logger

from src.server.config import config
from .errors import ResourceError

# 指纹 -> [锁, 引用计数]
_LOCKS: Dict[str, list] = {}
_LOCKS_GUARD = threading.Lock()


def _get_state_dir() -> str:
    """获取序列号状态目录，未配置时使用与当前模块同级的 serial_state 目录。"""
    return config.serial_state_dir or os.path.join(os.path.dirname(__file__), "serial_state")


def ca_identity(ca_cert: x509.Certificate) -> str:
    """CA 证书的 SHA-256 指纹（十六进制），作为计数器的键。"""
    return ca_cert.fingerprint(hashes.SHA256()).hex()


@contextmanager
def _locked(identity: str) -> Iterator[None]:
    """持有该 CA 的锁；最后一个使用者释放后移除条目，_LOCKS 只保留正在使用的 CA。"""
    with _LOCKS_GUARD:
        entry = _LOCKS.get(identity)
        if entry is None:
            entry = _LOCKS[identity] = [threading.Lock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _LOCKS_GUARD:
            entry[1] -= 1
            if entry[1] == 0:
                _LOCKS.pop(identity, None)


@contextmanager
def staged_file(directory: str) -> Iterator[str]:
    """
    在 directory 中创建一个唯一命名的临时文件并返回其路径。
    退出时无条件删除该文件（若仍存在）；删除失败只记录日志，不覆盖原始异常。
    :raises ResourceError: 无法创建临时文件。
    """
    try:
        fd, path = tempfile.mkstemp(dir=directory, prefix=".staging-")
        os.close(fd)
    except OSError as e:
        raise ResourceError(f"无法创建临时文件: {e}")
    try:
        yield path
    finally:
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            logger.warning(f"清理临时文件失败 {path}: {e}")


def _read_counter(path: str) -> int:
    if not os.path.exists(path):
        return 1
    try:
        with open(path, "r", encoding="utf-8") as f:
            return int(f.read().strip() or "1")
    except (OSError, ValueError) as e:
        raise ResourceError(f"读取序列号文件失败 {path}: {e}")


def _write_counter(path: str, value: int) -> None:
    directory = os.path.dirname(path)
    with staged_file(directory) as tmp_path:
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(f"{value}\n")
            os.replace(tmp_path, path)
        except OSError as e:
            raise ResourceError(f"写入序列号文件失败 {path}: {e}")


def next_serial(ca_cert: x509.Certificate) -> int:
    """
    为由 ca_cert 签发的下一张证书分配序列号。
    同一 CA 证书下的序列号互不重复（counter 策略依赖状态目录不被清空）。
    :raises ResourceError: 状态目录或序列号文件读写失败。
    """
    if config.serial_strategy == "random":
        return x509.random_serial_number()

    identity = ca_identity(ca_cert)
    state_dir = _get_state_dir()
    try:
        os.makedirs(state_dir, exist_ok=True)
    except OSError as e:
        raise ResourceError(f"无法创建序列号状态目录 {state_dir}: {e}")

    path = os.path.join(state_dir, f"{identity}.serial")
    with _locked(identity):
        current = _read_counter(path)
        _write_counter(path, current + 1)
    logger.debug(f"CA {identity[:16]} 分配序列号 {current}")
    return current

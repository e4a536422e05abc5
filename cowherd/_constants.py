# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
from wsproto.frame_protocol import CloseReason

KEEPALIVE_INTERVAL: float = 5.0
PING_TIMEOUT: float = 1.0
PING_PAYLOAD: bytes = b"ping"
NORMAL_CLOSURE: int = CloseReason.NORMAL_CLOSURE
ABNORMAL_CLOSURE: int = CloseReason.ABNORMAL_CLOSURE
REMOTE_TERM: str = "xterm-256color"

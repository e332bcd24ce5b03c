"""
kvscope TUI theme.

Provides:
- GLOBAL_CSS: Application-wide CSS
"""

GLOBAL_CSS = """
Screen {
    background: #0a0a0f;
}

Header {
    background: #1a1a2e;
    color: #00ff9f;
}

Footer {
    background: #1a1a2e;
    color: #00ff9f;
}

Input {
    border: heavy #00b8ff;
    background: #0f0f1a;
}

DataTable {
    height: 1fr;
    border: heavy #3a3a5e;
}

.status-line {
    height: 1;
    color: #9090b0;
    padding: 0 1;
}

.status-error {
    color: #ff5f87;
}

.suggestion-line {
    height: 2;
    color: #00ff9f;
    padding: 0 1;
}

.decoded-badge {
    color: #0a0a0f;
    background: #ffd75f;
    text-style: bold;
}
"""

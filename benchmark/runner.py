#!/usr/bin/env python3
"""
便捷入口脚本 - 等同于 `python -m mail_benchmark`

使用方法:
    uv run python runner.py --config ../config/default.yaml --seed-data
"""

from mail_benchmark.__main__ import main

if __name__ == "__main__":
    main()

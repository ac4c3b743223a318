"""
Configuration module for the Dependency Graph Demo.
Loads settings from environment variables or .env file.
依赖图 Demo 配置模块。
从环境变量或 .env 文件加载所有配置项。
"""

import os
from dotenv import load_dotenv

load_dotenv()  # 自动读取项目根目录的 .env 文件（若存在），优先级低于系统环境变量

# --- Task IDs ---
# --- 任务 ID ---
TASK_ID_PREFIX = os.getenv("TASK_ID_PREFIX", "task_")  # Generated ids look like task_1, task_2 / 生成的 ID 形如 task_1

# --- Codecs ---
# --- 编解码 ---
CSV_DEPENDENCY_DELIMITER = os.getenv("CSV_DEPENDENCY_DELIMITER", ";")  # dependencies 列内部的分隔符
JSON_INDENT = int(os.getenv("JSON_INDENT", "2"))                      # 导出 JSON 的缩进空格数

# --- Import / Export ---
# --- 导入 / 导出 ---
EXPORT_DIR = os.path.expanduser(os.getenv("EXPORT_DIR", "."))           # 默认导出目录
MAX_IMPORT_BYTES = int(os.getenv("MAX_IMPORT_BYTES", "5000000"))       # 导入文件大小上限（字节），超出视为非法输入

# --- Logging ---
# --- 日志 ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()  # 非 verbose 模式下的控制台日志级别

"""
共通ロギング設定

各サービスの create_app() から 1 回呼ばれる。
レベルは LOG_LEVEL 環境変数（既定 INFO）で切り替える。
"""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(service_name: str) -> logging.Logger:
    """ルートロガーを設定し、サービス名のロガーを返す。"""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return logging.getLogger(service_name)

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Error aggregator diagnostics service entry point."""

import logging

from error_aggregator import ErrorAggregator, load_config, set_error_aggregator
from error_aggregator.api import create_app

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    config = load_config()
    aggregator = ErrorAggregator.from_config(config)
    set_error_aggregator(aggregator)

    app = create_app(aggregator)
    logger.info(f"Starting Error Aggregator Service on port {config.http_port}")
    try:
        # threaded so a held-open event stream does not block other requests
        app.run(host="0.0.0.0", port=config.http_port, debug=False, threaded=True)
    finally:
        aggregator.close()


if __name__ == "__main__":
    main()

import logging
import os

from ghproxy.app import create_app

if __name__ == '__main__':
    logging.basicConfig(
        level=os.environ.get('GHPROXY_LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app = create_app()
    app.run(host=os.environ.get('GHPROXY_HOST', '0.0.0.0'),
            port=int(os.environ.get('GHPROXY_PORT', 3469)))

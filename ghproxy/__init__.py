from ghproxy.app import create_app
from ghproxy.config import ProxyConfig

__version__ = '0.1.0'

__all__ = ['create_app', 'ProxyConfig', '__version__']

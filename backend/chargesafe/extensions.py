# Overview: Flask extension instances for database, migrations and the change feed.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .feed import ChangeFeed

db = SQLAlchemy()
migrate = Migrate()
change_feed = ChangeFeed()

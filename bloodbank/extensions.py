from flask_apscheduler import APScheduler
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
scheduler = APScheduler()
cors = CORS()

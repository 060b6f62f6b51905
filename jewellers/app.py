# jewellers/app.py
import os
import sqlite3

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .api import IdConverter, api
from .errors import StoreError
from .logger import Logger
from .models import db, Role, Category, Metal, MetalType

load_dotenv()

logger = Logger.get_logger(__name__)

DEFAULT_ROLES = ['ADMIN', 'STAFF']
DEFAULT_CATEGORIES = ['Rings', 'Necklaces', 'Earrings', 'Bracelets', 'Pendants']
DEFAULT_METALS = [
    (MetalType.GOLD, '24K'),
    (MetalType.GOLD, '22K'),
    (MetalType.GOLD, '18K'),
    (MetalType.SILVER, '925'),
    (MetalType.ROSE_GOLD, '18K'),
]


@event.listens_for(Engine, 'connect')
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # sqlite ignores foreign keys unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def create_app(config=None):
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///jewellery.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'devsecret')
    if config:
        app.config.update(config)
    db.init_app(app)

    with app.app_context():
        db.create_all()
        logger.info(f"Jewellery API ready on {db.engine.url!r}")

    app.url_map.converters['id'] = IdConverter
    app.register_blueprint(api)
    register_error_handlers(app)
    register_commands(app)
    register_health(app)

    return app


def register_error_handlers(app):

    @app.errorhandler(StoreError)
    def handle_store_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'error': 'NotFound', 'message': 'no such endpoint'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({'error': 'MethodNotAllowed', 'message': str(exc.description)}), 405

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        db.session.rollback()
        logger.exception(f'Unhandled error on {request.method} {request.path}')
        return jsonify({'error': 'InternalError', 'message': 'unexpected server error'}), 500


def register_health(app):

    @app.route('/')
    def read_root():
        return {'message': 'Jewellery API running'}

    @app.route('/health')
    def health():
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError as e:
            logger.error(f'Database health check failed: {e}')
            return {'backend': 'running', 'database': 'unavailable'}, 503
        return {'backend': 'running', 'database': 'connected'}


def seed_defaults():
    """Insert the default roles, categories and metals that are missing."""
    added = 0
    for name in DEFAULT_ROLES:
        if not Role.query.filter_by(name=name).first():
            db.session.add(Role(name=name))
            added += 1
    for name in DEFAULT_CATEGORIES:
        if not Category.query.filter_by(name=name).first():
            db.session.add(Category(name=name))
            added += 1
    for metal_type, purity in DEFAULT_METALS:
        if not Metal.query.filter_by(type=metal_type, purity=purity).first():
            db.session.add(Metal(type=metal_type, purity=purity))
            added += 1
    db.session.commit()
    return added


def register_commands(app):

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first.')
    def init_db(drop):
        """Create the jewellery tables."""
        if drop:
            db.drop_all()
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('seed-db')
    def seed_db():
        """Add default roles, categories and metals."""
        added = seed_defaults()
        click.echo(f'Inserted {added} rows.')

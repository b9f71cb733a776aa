"""
Civic Volunteering API - Flask Application Entry Point

Builds the Flask application with OpenAPI 3.0 support, wires the entity
store, the registration and collaboration engines, the notification
dispatcher and the optional AMQP relay and Redis cache.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import ErrorHandlerMiddleware
from middleware.validation import ValidationMiddleware
from services.amqp import create_amqp_service
from services.collaboration import CollaborationWorkflow
from services.donations import DonationService
from services.event_bus import EventBus
from services.hal import create_hal_formatter
from services.memory_store import InMemoryStore
from services.mongodb import MongoDBService
from services.notifications import NotificationDispatcher
from services.queries import QueryFacade
from services.redis import RedisService
from services.registration import RegistrationEngine
from services.store import EntityStore
from services.users import UserDirectory

# OpenAPI info
info = Info(
    title="Civic Volunteering API",
    version="1.0.0",
    description="Civic issues, volunteering events and NGO collaboration with HATEOAS links"
)


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Read configuration from the environment, then apply overrides."""
    config = {
        'ENVIRONMENT': os.getenv('ENVIRONMENT', 'development'),
        'STORE_BACKEND': os.getenv('STORE_BACKEND', 'mongodb'),
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/civic_volunteering_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'civic_volunteering_dev'),
        'REDIS_URL': os.getenv('REDIS_URL', ''),
        'AMQP_URL': os.getenv('AMQP_URL', ''),
        'AMQP_EXCHANGE': os.getenv('AMQP_EXCHANGE', 'civic.events'),
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
        'DONATION_STATS_TTL': int(os.getenv('DONATION_STATS_TTL', '300')),
    }
    config.update(overrides or {})
    config['DEBUG'] = config['ENVIRONMENT'] == 'development'
    return config


def create_store(config: Dict[str, Any]) -> EntityStore:
    """Build the entity store selected by STORE_BACKEND."""
    backend = config['STORE_BACKEND']
    if backend == 'memory':
        store = InMemoryStore()
    elif backend == 'mongodb':
        store = MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {backend}")
    store.setup()
    return store


def create_app(overrides: Optional[Dict[str, Any]] = None) -> OpenAPI:
    """
    Application factory.

    Args:
        overrides: Configuration values that take precedence over the environment

    Returns:
        Configured Flask application
    """
    config = load_config(overrides)

    # Initialize observability first
    setup_observability(config['ENVIRONMENT'], config['OTEL_ENABLED'])

    validation_middleware = ValidationMiddleware(config['BASE_URL'])
    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=validation_middleware.handle_validation_error
    )
    app.config.update(config)

    add_observability_middleware(app)

    # Initialize services
    store = create_store(config)
    bus = EventBus()
    notification_dispatcher = NotificationDispatcher(store)
    bus.subscribe(notification_dispatcher.handle)

    amqp_service = create_amqp_service(config['AMQP_URL'] or None, config['AMQP_EXCHANGE'])
    if amqp_service is not None:
        bus.subscribe(amqp_service.handle)
        amqp_service.start()

    redis_service = RedisService(config['REDIS_URL']) if config['REDIS_URL'] else None

    hal_formatter = create_hal_formatter(config['BASE_URL'])
    ErrorHandlerMiddleware(app, config['BASE_URL'])

    # Make services available to routes
    app.store = store
    app.event_bus = bus
    app.amqp_service = amqp_service
    app.redis_service = redis_service
    app.hal_formatter = hal_formatter
    app.validation_middleware = validation_middleware
    app.registration_engine = RegistrationEngine(store, bus)
    app.collaboration_workflow = CollaborationWorkflow(store, bus)
    app.notification_dispatcher = notification_dispatcher
    app.query_facade = QueryFacade(store)
    app.donation_service = DonationService(store, redis_service, config['DONATION_STATS_TTL'])
    app.user_directory = UserDirectory(store)

    # Register routes
    from routes.users import users_bp
    from routes.issues import issues_bp
    from routes.events import events_bp
    from routes.collaborations import collaborations_bp
    from routes.ngos import ngos_bp
    from routes.notifications import notifications_bp
    from routes.donations import donations_bp

    app.register_api(users_bp)
    app.register_api(issues_bp)
    app.register_api(events_bp)
    app.register_api(collaborations_bp)
    app.register_api(ngos_bp)
    app.register_api(notifications_bp)
    app.register_api(donations_bp)

    @app.route('/api/healthz')
    def health_check():
        """Store and cache health."""
        dependencies = {'store': store.health_check()}
        if redis_service is not None:
            dependencies['cache'] = redis_service.health_check()
        if amqp_service is not None:
            dependencies['amqp'] = {'status': 'healthy' if amqp_service.health_check() else 'unhealthy'}

        store_healthy = dependencies['store']['status'] == 'healthy'
        degraded = any(dep.get('status') != 'healthy' for dep in dependencies.values())
        health_data = {
            'status': 'unhealthy' if not store_healthy else 'degraded' if degraded else 'healthy',
            'service': 'civic-volunteering-api',
            'version': info.version,
            'environment': config['ENVIRONMENT'],
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'dependencies': dependencies
        }

        health_response = hal_formatter.builder.build_resource_response(health_data, "health")
        health_response['_links'] = {
            'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz').model_dump(exclude_none=True)
        }
        return jsonify(health_response), 200 if store_healthy else 503

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )

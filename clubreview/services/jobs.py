"""Background job functions for RQ worker."""


def deliver_notification_job(delivery_id):
    """Background job to send a recorded notification."""
    from clubreview import create_app

    app = create_app()

    with app.app_context():
        from clubreview.services.notifications import notification_service
        result = notification_service.deliver_by_id(delivery_id)
        if not result.success:
            app.logger.error(f"Notification job for {delivery_id} failed: {result.error}")
        return result.success


def retry_failed_notifications_job():
    """Background job to retry failed notifications."""
    from clubreview import create_app

    app = create_app()

    with app.app_context():
        from clubreview.services.notifications import notification_service
        return notification_service.retry_failed_notifications()

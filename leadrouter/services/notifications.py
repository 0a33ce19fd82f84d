"""
Notifications — Slack webhook integration for submission events.

Notification failure never blocks the worker.
"""
import logging
import requests

logger = logging.getLogger('services.notifications')


class SlackNotifier:
    """Posts Slack blocks to one incoming webhook. No URL → every call is a no-op."""

    def __init__(self, webhook_url=None, http=requests):
        self.webhook_url = webhook_url
        self.http = http

    def submission_failed(self, submission, partner=None):
        """Alert on a submission that hit the retry limit."""
        if not self.webhook_url:
            return

        partner_name = partner.name if partner is not None else submission.partner_id
        try:
            blocks = [
                {
                    "type": "header",
                    "text": {
                        "type": "plain_text",
                        "text": f"Lead Submission FAILED — {submission.category_key}",
                    }
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Report:* {submission.report_id}"},
                        {"type": "mrkdwn", "text": f"*Partner:* {partner_name}"},
                        {"type": "mrkdwn", "text": f"*Retries:* {submission.retry_count or 0}"},
                        {"type": "mrkdwn", "text": f"*Submission:* {submission.id[:8]}"},
                    ]
                },
            ]

            if submission.error_message:
                blocks.append({
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"*Error:* ```{submission.error_message[:500]}```"}
                })

            self.http.post(self.webhook_url, json={"blocks": blocks}, timeout=10)
            logger.info("Submission %s failure notification sent", submission.id[:8])

        except Exception:
            logger.error("Failed to send failure notification for submission %s",
                         submission.id[:8], exc_info=True)

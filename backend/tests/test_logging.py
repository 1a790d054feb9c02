"""
Tests for event logging.
"""
import json

from shared.logging import summarize_event


class TestSummarizeEvent:
    """Tests for summarize_event."""

    def test_api_event_drops_body_and_headers(self):
        event = {
            'httpMethod': 'POST',
            'path': '/orders',
            'body': json.dumps({'images': [{'data': 'aGVsbG8='}]}),
            'headers': {'Authorization': 'Bearer secret'},
            'multiValueHeaders': {'Authorization': ['Bearer secret']},
        }

        summary = summarize_event(event)

        assert summary == {'httpMethod': 'POST', 'path': '/orders', 'bodyLength': len(event['body'])}

    def test_sqs_event_keeps_only_message_ids(self):
        event = {'Records': [
            {'messageId': 'm-1', 'body': '{"orderId": "order-1"}'},
            {'messageId': 'm-2', 'body': '{"orderId": "order-2"}'},
        ]}

        assert summarize_event(event) == {'messageIds': ['m-1', 'm-2']}

    def test_scheduled_event_unchanged(self):
        event = {'source': 'aws.events', 'detail-type': 'Scheduled Event'}
        assert summarize_event(event) == event

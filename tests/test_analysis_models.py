"""
Tests for AnalysisResult parsing and schema tagging.
"""

import pytest

from insight_actions.errors import ExtractionError
from insight_actions.models.analysis import (
    LegacyAnalysis,
    SchedulingIntent,
    StageSuggestion,
    StructuredAnalysis,
    detect_schema_kind,
    empty_analysis,
    parse_analysis,
)


LEGACY_PAYLOAD = {
    'summary': 'Client is keen on the 200-seat tier.',
    'participants': ['Dana', 'Sam'],
    'keyTopics': ['pricing', 'security'],
    'nextStep': 'Send the quote',
    'objection': None,
    'intent': 'High',
    'timeline': 'Q2',
    'riskSignals': None,
    'schedulingIntent': {'title': 'Security walkthrough', 'dateTime': 'Thursday at 4pm'},
    'dealSignal': 'Positive',
    'dealStageSuggestion': 'Proposal Sent',
}

STRUCTURED_PAYLOAD = {
    'summary': {'text': 'Pilot went well.', 'confidence': 0.9},
    'stakeholders': [
        {'name': 'Dana', 'role': 'VP Ops', 'evidence': 'introduced herself', 'confidence': 0.8},
        {'name': '  ', 'role': 'unknown'},
    ],
    'budget': '50k',
    'objections': None,
    'intentScore': 0.82,
    'actions': [
        {'type': 'schedule', 'title': 'Security walkthrough', 'dateTime': 'Thursday at 4pm'},
        {'type': 'stage_update', 'proposedStage': 'Proposal Sent', 'evidence': 'asked for a quote'},
    ],
    'dealSignal': 'Positive',
    'dealStageSuggestion': {'stage': 'Proposal Sent', 'reasoning': 'quote requested', 'confidence': 0.7},
    'unknownField': 'ignored',
}


class TestSchemaDetection:
    def test_legacy(self):
        assert detect_schema_kind(LEGACY_PAYLOAD) == 'legacy'

    @pytest.mark.parametrize('key', ['actions', 'stakeholders', 'intentScore'])
    def test_structured_markers(self, key):
        assert detect_schema_kind({key: None}) == 'structured'

    def test_summary_object_marks_structured(self):
        assert detect_schema_kind({'summary': {'text': 'x'}}) == 'structured'


class TestParseLegacy:
    def test_fields_and_aliases(self):
        analysis = parse_analysis(LEGACY_PAYLOAD)

        assert isinstance(analysis, LegacyAnalysis)
        assert analysis.kind == 'legacy'
        assert analysis.next_step == 'Send the quote'
        assert analysis.key_topics == ['pricing', 'security']
        assert analysis.risk_signals == []
        assert isinstance(analysis.scheduling_intent, SchedulingIntent)
        assert analysis.scheduling_intent.date_time == 'Thursday at 4pm'

    def test_helpers(self):
        analysis = parse_analysis(LEGACY_PAYLOAD)

        assert analysis.summary_text == 'Client is keen on the 200-seat tier.'
        assert analysis.stage_suggestion_text == 'Proposal Sent'
        assert analysis.participant_names == ['Dana', 'Sam']

    def test_string_scheduling_intent(self):
        analysis = parse_analysis({'schedulingIntent': 'Friday at 9am'})
        assert analysis.scheduling_intent == 'Friday at 9am'

    def test_stage_suggestion_object_in_legacy_payload(self):
        analysis = parse_analysis({'dealStageSuggestion': {'stage': 'Negotiation'}})
        assert isinstance(analysis.deal_stage_suggestion, StageSuggestion)
        assert analysis.stage_suggestion_text == 'Negotiation'


class TestParseStructured:
    def test_fields(self):
        analysis = parse_analysis(STRUCTURED_PAYLOAD)

        assert isinstance(analysis, StructuredAnalysis)
        assert analysis.kind == 'structured'
        assert analysis.intent_score == 0.82
        assert analysis.objections == []
        assert len(analysis.actions) == 2
        assert analysis.actions[0].date_time == 'Thursday at 4pm'
        assert analysis.actions[1].proposed_stage == 'Proposal Sent'

    def test_helpers(self):
        analysis = parse_analysis(STRUCTURED_PAYLOAD)

        assert analysis.summary_text == 'Pilot went well.'
        assert analysis.stage_suggestion_text == 'Proposal Sent'
        assert analysis.participant_names == ['Dana']

    def test_plain_string_summary_and_stakeholders(self):
        analysis = parse_analysis({'actions': [], 'summary': 'Short call', 'stakeholders': ['Lee']})
        assert analysis.summary_text == 'Short call'
        assert analysis.participant_names == ['Lee']

    def test_null_actions_become_empty(self):
        analysis = parse_analysis({'actions': None})
        assert analysis.actions == []

    def test_already_parsed_analysis_returned_as_is(self):
        analysis = parse_analysis(STRUCTURED_PAYLOAD)
        assert parse_analysis(analysis) is analysis


class TestLooseMetadata:
    def test_non_numeric_confidence_keeps_actions(self):
        analysis = parse_analysis(
            {
                'summary': {'text': 'Good call', 'confidence': 'high'},
                'stakeholders': [{'name': 'Dana', 'role': 3, 'confidence': 'medium'}],
                'intentScore': 'strong',
                'actions': [
                    {'type': 'schedule', 'title': 'Demo', 'dateTime': 'Thursday at 4pm', 'confidence': 'high'},
                ],
                'dealStageSuggestion': {'stage': 'Proposal', 'reasoning': ['quote'], 'confidence': 'low'},
            }
        )

        assert isinstance(analysis, StructuredAnalysis)
        assert analysis.summary_text == 'Good call'
        assert analysis.actions[0].date_time == 'Thursday at 4pm'
        assert analysis.participant_names == ['Dana']
        assert analysis.stage_suggestion_text == 'Proposal'

    def test_non_text_action_evidence_dropped(self):
        analysis = parse_analysis({'actions': [{'type': 'followup', 'title': 'Call back', 'evidence': {'quote': 'x'}}]})

        assert analysis.actions[0].evidence is None

    def test_numeric_legacy_intent(self):
        analysis = parse_analysis({'nextStep': 'send quote', 'intent': 7})

        assert isinstance(analysis, LegacyAnalysis)
        assert analysis.intent == 7
        assert analysis.next_step == 'send quote'


class TestParseErrors:
    @pytest.mark.parametrize('payload', [None, 'text', ['a'], 3])
    def test_non_object_rejected(self, payload):
        with pytest.raises(ExtractionError):
            parse_analysis(payload)

    def test_schema_mismatch_rejected(self):
        with pytest.raises(ExtractionError) as exc_info:
            parse_analysis({'actions': 'call them'})
        assert exc_info.value.context['kind'] == 'structured'


class TestEmptyAnalysis:
    def test_neutral_values(self):
        analysis = empty_analysis()

        assert analysis.summary == 'Error analyzing transcript'
        assert analysis.intent == 'Unknown'
        assert analysis.deal_signal == 'Neutral'
        assert analysis.participants == []
        assert analysis.scheduling_intent is None
        assert analysis.next_step is None

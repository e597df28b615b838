"""Ingest package - instrument file reader and trial discovery.

This package handles:
- Discovery of trial files in a measurement folder
- Parsing trial metadata from file names (declarative naming schema)
- Reading viscometer text exports into RawSample records

Key classes:
- ViscometerReader: Reads one trial file into a TrialRecording
- ViscometerLineFormat: Compiled per-field line parser

Design principle:
- Readers produce validated TrialRecording objects
- Any unparseable line makes the whole trial fail (MalformedRecordError)
"""

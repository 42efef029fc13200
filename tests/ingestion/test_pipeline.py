"""
Tests for IngestionPipeline (csv_ingestion/services/pipeline.py).

Covers the per-file state machine, row-level fault isolation, statistics
finalization, pacing and cooperative cancellation.
"""

import pytest

from csv_ingestion.collaborators import InMemoryFailureRecorder
from csv_ingestion.domain import FileState, StatsAction, StatsKey
from csv_ingestion.exceptions import (
    CrawlingAccessError,
    DataStoreCrawlingError,
    FileProcessingError,
)
from csv_ingestion.services import Liveness
from csv_ingestion.services.pipeline import CRAWLER_STATS_KEY, CRAWLING_CONTEXT_KEY


class TestHeaderAndProjection:
    def test_header_scenario_contexts(self, write_csv, make_job, make_pipeline, recording_evaluator, sink):
        path = write_csv("abc.csv", "a,b,c\n1,2,3\n4,,6\n")
        job = make_job({"has_header_line": "true"}, scripts={"value": "a"})
        pipeline = make_pipeline(job, evaluator=recording_evaluator)

        result = pipeline.process_file(path)

        keys = ("a", "b", "c", "cell1", "cell2", "cell3")
        contexts = [{k: ctx[k] for k in keys} for ctx in recording_evaluator.contexts]
        assert contexts == [
            {"a": "1", "b": "2", "c": "3", "cell1": "1", "cell2": "2", "cell3": "3"},
            {"a": "4", "b": "", "c": "6", "cell1": "4", "cell2": "", "cell3": "6"},
        ]
        assert sink.records == [{"value": "1"}, {"value": "4"}]
        assert result.state is FileState.COMPLETED
        assert result.rows_read == 2
        assert result.stored == 2

    def test_context_carries_file_fields_params_and_defaults(
        self, write_csv, make_job, make_pipeline, recording_evaluator
    ):
        path = write_csv("ctx.csv", "x\n")
        job = make_job({"files": "ignored"}, scripts={"title": "cell1"}, defaults={"site": "s1"})
        make_pipeline(job, evaluator=recording_evaluator).process_file(path)

        context = recording_evaluator.contexts[0]
        assert context["csvfile"] == str(path.absolute())
        assert context["csvfilename"] == "ctx.csv"
        assert context["crawlingConfig"] is job
        assert context["files"] == "ignored"
        assert context["site"] == "s1"
        assert context[CRAWLING_CONTEXT_KEY]["doc"] == {"site": "s1", "title": "x"}

    def test_target_holds_only_defaults_and_scripted_fields(self, write_csv, make_job, make_pipeline, sink):
        path = write_csv("t.csv", "id,name\n1, Alpha \n")
        job = make_job(
            {"has_header_line": "true"},
            scripts={"id": "id", "title": "name|strip|upper", "missing": "nope"},
            defaults={"lang": "en"},
        )
        make_pipeline(job).process_file(path)
        assert sink.records == [{"lang": "en", "id": "1", "title": "ALPHA"}]

    def test_header_only_file(self, write_csv, make_job, make_pipeline, sink, stats):
        path = write_csv("h.csv", "a,b\n")
        result = make_pipeline(make_job({"has_header_line": "true"})).process_file(path)
        assert result.state is FileState.COMPLETED
        assert result.rows_read == 0
        assert sink.records == []
        assert stats.begun == []

    def test_empty_file_with_header_expected(self, write_csv, make_job, make_pipeline):
        path = write_csv("empty.csv", "")
        result = make_pipeline(make_job({"has_header_line": "true"})).process_file(path)
        assert result.state is FileState.COMPLETED
        assert result.rows_read == 0

    def test_semicolon_quote_skip_dialect_yields_three_records(self, write_csv, make_job, make_pipeline, sink):
        path = write_csv("semi.csv", "generated by export\n'a;1';x\nb;y\n'c';z\n")
        job = make_job(
            {"separator_character": ";", "quote_character": "'", "skip_lines": "1"},
            scripts={"first": "cell1", "second": "cell2"},
        )
        result = make_pipeline(job).process_file(path)
        assert result.stored == 3
        assert sink.records == [
            {"first": "a;1", "second": "x"},
            {"first": "b", "second": "y"},
            {"first": "c", "second": "z"},
        ]

    def test_sink_receives_per_row_params_copy(self, write_csv, make_job, make_pipeline, scripted_sink):
        path = write_csv("p.csv", "1\n2\n")
        job = make_job({"label": "L"}, scripts={"id": "cell1"})
        recording_sink = scripted_sink()
        make_pipeline(job, sink=recording_sink).process_file(path)

        first, second = recording_sink.params_seen
        assert first is not second
        assert first["label"] == "L"
        assert isinstance(first[CRAWLER_STATS_KEY], StatsKey)
        assert str(first[CRAWLER_STATS_KEY]) == f"{path.absolute()}#1"
        assert str(second[CRAWLER_STATS_KEY]) == f"{path.absolute()}#2"
        assert CRAWLER_STATS_KEY not in job.params


class TestEmptyRows:
    def test_blank_row_never_reaches_evaluator_or_sink(
        self, write_csv, make_job, make_pipeline, recording_evaluator, sink, stats, failures
    ):
        path = write_csv("blank.csv", "a,b\n , \n,\nc,d\n")
        job = make_job(scripts={"v": "cell1"})
        result = make_pipeline(job, evaluator=recording_evaluator).process_file(path)

        assert [ctx["cell1"] for ctx in recording_evaluator.contexts] == ["a", "c"]
        assert sink.records == [{"v": "a"}, {"v": "c"}]
        assert result.discarded == 2
        assert len(stats.discarded) == 2
        assert failures.entries == []

    def test_discarded_rows_do_not_pace(self, write_csv, make_job, make_pipeline, sleeps):
        path = write_csv("pace.csv", "a\n\n\nb\n")
        make_pipeline(make_job({"readInterval": "200"})).process_file(path)
        assert sleeps == [0.2, 0.2]


class TestRowFailures:
    def test_recoverable_failure_continues(self, write_csv, make_job, make_pipeline, scripted_sink, failures, stats):
        path = write_csv("r.csv", "1\n2\n3\n")
        failing = scripted_sink({"2": CrawlingAccessError("denied", cause=PermissionError("no"))})
        job = make_job(scripts={"id": "cell1"})

        result = make_pipeline(job, sink=failing).process_file(path)

        assert [r["id"] for r in failing.records] == ["1", "3"]
        assert result.state is FileState.COMPLETED
        assert result.failed == 1
        entry = failures.entries[0]
        assert entry.job_name == "test-job"
        assert entry.error_kind == "PermissionError"
        assert entry.url == f"{path.absolute()}:2"
        assert stats.actions[StatsAction.ACCESS_EXCEPTION] == 1
        assert stats.actions[StatsAction.FINISHED] == 2

    def test_unclassified_failure_continues(self, write_csv, make_job, make_pipeline, failures, stats):
        path = write_csv("u.csv", "1\n2\n")
        job = make_job(scripts={"id": "cell1|unknown_transform"})

        result = make_pipeline(job).process_file(path)

        assert result.failed == 2
        assert [e.error_kind for e in failures.entries] == ["ValueError", "ValueError"]
        assert stats.actions[StatsAction.EXCEPTION] == 2

    def test_aborting_failure_stops_file_after_recording(
        self, write_csv, make_job, make_pipeline, scripted_sink, failures, stats
    ):
        path = write_csv("a.csv", "1\n2\n3\n")
        failing = scripted_sink({"2": DataStoreCrawlingError("http://doc/2", "stop", aborted=True)})
        job = make_job(scripts={"id": "cell1"})

        result = make_pipeline(job, sink=failing).process_file(path)

        assert result.state is FileState.ABORTED
        assert result.rows_read == 2
        assert [r["id"] for r in failing.records] == ["1"]
        assert [e.url for e in failures.entries] == ["http://doc/2"]
        assert stats.in_progress == set()

    def test_stats_always_finalized(self, write_csv, make_job, make_pipeline, scripted_sink, stats):
        path = write_csv("s.csv", "1\n\n2\n3\n")
        failing = scripted_sink({"3": RuntimeError("boom")})
        make_pipeline(make_job(scripts={"id": "cell1"}), sink=failing).process_file(path)

        assert len(stats.begun) == 4
        assert sorted(stats.done_keys) == sorted(stats.begun)
        assert stats.in_progress == set()
        assert stats.actions[StatsAction.PREPARED] == 3
        assert stats.actions[StatsAction.EVALUATED] == 3
        assert stats.actions[StatsAction.FINISHED] == 2
        assert stats.actions[StatsAction.EXCEPTION] == 1

    def test_document_url_attached_to_stats_key(self, write_csv, make_job, make_pipeline, stats):
        path = write_csv("url.csv", "http://example.com/1\n")
        make_pipeline(make_job(scripts={"url": "cell1"})).process_file(path)
        assert stats.urls == {f"{path.absolute()}#1": "http://example.com/1"}

    def test_failure_recorder_error_is_fatal_for_file(self, write_csv, make_job, make_pipeline, scripted_sink):
        class BrokenRecorder(InMemoryFailureRecorder):
            def store(self, job_config, error_kind, url, error):
                raise OSError("failure store offline")

        path = write_csv("f.csv", "1\n")
        failing = scripted_sink({"1": CrawlingAccessError("denied")})
        pipeline = make_pipeline(
            make_job(scripts={"id": "cell1"}), sink=failing, failure_recorder=BrokenRecorder()
        )

        with pytest.raises(FileProcessingError) as exc_info:
            pipeline.process_file(path)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_failure_logged_with_context(self, write_csv, make_job, make_pipeline, scripted_sink, captured_logs):
        path = write_csv("log.csv", "1\n")
        failing = scripted_sink({"1": CrawlingAccessError("denied")})
        make_pipeline(make_job(scripts={"id": "cell1"}), sink=failing).process_file(path)

        failed = [r for r in captured_logs() if r["message"] == "record_failed"]
        assert failed[0]["file_path"] == str(path.absolute())
        assert failed[0]["line_number"] == 1

    def test_row_log_lines_carry_stats_key(self, write_csv, make_job, make_pipeline, scripted_sink, captured_logs):
        path = write_csv("keys.csv", "1\n2\n")
        failing = scripted_sink({"2": CrawlingAccessError("denied")})
        make_pipeline(make_job(scripts={"id": "cell1"}), sink=failing).process_file(path)

        logs = captured_logs()
        stored = [r for r in logs if r["message"] == "record_stored"]
        failed = [r for r in logs if r["message"] == "record_failed"]
        processed = [r for r in logs if r["message"] == "file_processed"]
        assert [r["stats_key"] for r in stored] == [f"{path.absolute()}#1"]
        assert [r["stats_key"] for r in failed] == [f"{path.absolute()}#2"]
        assert "stats_key" not in processed[0]


class TestFileLevel:
    def test_missing_file_raises_processing_error(self, tmp_path, make_job, make_pipeline):
        with pytest.raises(FileProcessingError) as exc_info:
            make_pipeline(make_job()).process_file(tmp_path / "absent.csv")
        assert exc_info.value.path == str((tmp_path / "absent.csv").absolute())
        assert str(exc_info.value) == "Failed to crawl data when reading csv file."
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_malformed_quoting_is_fatal_for_file(self, write_csv, make_job, make_pipeline, sink):
        path = write_csv("bad.csv", 'ok\n"abc"def\nnever\n')
        with pytest.raises(FileProcessingError):
            make_pipeline(make_job(scripts={"v": "cell1"})).process_file(path)
        assert sink.records == [{"v": "ok"}]

    def test_undecodable_bytes_are_fatal_for_file(self, tmp_path, make_job, make_pipeline):
        path = tmp_path / "latin.csv"
        path.write_bytes("caf\xe9\n".encode("latin-1"))
        with pytest.raises(FileProcessingError) as exc_info:
            make_pipeline(make_job()).process_file(path)
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_configured_encoding_used(self, tmp_path, make_job, make_pipeline, sink):
        path = tmp_path / "latin.csv"
        path.write_bytes("caf\xe9\n".encode("latin-1"))
        make_pipeline(make_job({"file_encoding": "latin-1"}, scripts={"v": "cell1"})).process_file(path)
        assert sink.records == [{"v": "café"}]

    def test_pacing_between_records(self, write_csv, make_job, make_pipeline, sleeps):
        path = write_csv("p.csv", "1\n2\n3\n")
        make_pipeline(make_job({"readInterval": "1500"})).process_file(path)
        assert sleeps == [1.5, 1.5, 1.5]

    def test_no_pacing_by_default(self, write_csv, make_job, make_pipeline, sleeps):
        path = write_csv("p.csv", "1\n2\n")
        make_pipeline(make_job()).process_file(path)
        assert sleeps == []


class TestLiveness:
    def test_stop_ends_file_at_row_boundary(self, write_csv, make_job, make_pipeline, sink):
        liveness = Liveness()
        path = write_csv("l.csv", "1\n2\n3\n")

        def stop_after_first(_seconds: float) -> None:
            liveness.stop()

        pipeline = make_pipeline(
            make_job({"readInterval": "10"}, scripts={"id": "cell1"}),
            liveness=liveness,
            sleep=stop_after_first,
        )
        result = pipeline.process_file(path)

        assert [r["id"] for r in sink.records] == ["1"]
        assert result.state is FileState.COMPLETED
        assert result.rows_read == 1

    def test_stopped_pipeline_reads_nothing(self, write_csv, make_job, make_pipeline, sink):
        liveness = Liveness()
        liveness.stop()
        path = write_csv("l.csv", "1\n")
        result = make_pipeline(make_job(scripts={"id": "cell1"}), liveness=liveness).process_file(path)
        assert result.rows_read == 0
        assert sink.records == []

    def test_reset(self):
        liveness = Liveness()
        liveness.stop()
        liveness.reset()
        assert liveness.alive is True

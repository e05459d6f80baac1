"""Rendition encoding, probing and progress mapping."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from fake_media_tools import FakeMediaTools, FakeProcessRunner, ScriptedProcess

from app.domain.renditions import DEFAULT_LADDER
from app.errors import ProbeFailedError, TranscodeFailedError
from app.services.encoder import ElapsedTimeParser, ProgressThrottle, ResolutionEncoder, ladder_progress


class ElapsedTimeParserTests(unittest.TestCase):
    def test_parses_latest_marker_in_chunk(self) -> None:
        parser = ElapsedTimeParser()
        elapsed = parser.feed("frame=1 time=00:00:01.00 bitrate=1k\rframe=2 time=00:01:02.50 bitrate=1k\r")
        self.assertAlmostEqual(elapsed, 62.5)

    def test_marker_split_across_chunks_is_recovered(self) -> None:
        parser = ElapsedTimeParser()
        self.assertIsNone(parser.feed("frame=20 fps=30 q=28.0 size=N/A time=00:00:0"))
        self.assertAlmostEqual(parser.feed("5.00 bitrate=N/A speed=5x\r"), 5.0)

    def test_noise_without_marker_returns_none(self) -> None:
        parser = ElapsedTimeParser()
        self.assertIsNone(parser.feed("Input #0, mov,mp4,m4a, from 'in.mp4':\n"))
        self.assertIsNone(parser.feed("  Duration: N/A, bitrate: N/A\n"))

    def test_consumed_marker_is_not_reported_twice(self) -> None:
        parser = ElapsedTimeParser()
        self.assertAlmostEqual(parser.feed("time=00:00:03.00 "), 3.0)
        self.assertIsNone(parser.feed("speed=1x\r"))


class ProgressMappingTests(unittest.TestCase):
    def test_ladder_progress_places_rendition_inside_its_band(self) -> None:
        # Halfway through the second of two renditions.
        value = ladder_progress(1, 5.0 / 10.0, 2)
        self.assertGreaterEqual(value, 40)
        self.assertLessEqual(value, 80)
        self.assertAlmostEqual(value, 60.0)

    def test_ladder_progress_clamps_fraction(self) -> None:
        self.assertAlmostEqual(ladder_progress(0, -1.0, 2), 0.0)
        self.assertAlmostEqual(ladder_progress(1, 3.0, 2), 80.0)

    def test_throttle_reports_only_meaningful_steps_and_always_finishes(self) -> None:
        reported: list[float] = []
        throttle = ProgressThrottle(100.0, reported.append)

        for elapsed in (1, 2, 6, 8, 12, 13, 500):
            throttle.observe(elapsed)
        throttle.finish()

        self.assertEqual(reported, [0.06, 0.12, 1.0, 1.0])

    def test_throttle_ignores_zero_duration(self) -> None:
        reported: list[float] = []
        throttle = ProgressThrottle(0.0, reported.append)
        throttle.observe(10)
        self.assertEqual(reported, [])


class ResolutionEncoderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.source = self.root / "abc123.mp4"
        self.source.write_bytes(b"source")
        self.out_dir = self.root / "abc123"
        self.out_dir.mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_encode_args_use_rendition_geometry_and_hls_muxer_settings(self) -> None:
        encoder = ResolutionEncoder(runner_factory=FakeMediaTools(), preset="ultrafast", crf=28, threads=1)
        spec = DEFAULT_LADDER[0]

        args = encoder.build_encode_args(self.source, self.out_dir, spec)

        def value(flag: str) -> str:
            return args[args.index(flag) + 1]

        self.assertIn("pad=1280:720:(ow-iw)/2:(oh-ih)/2", value("-vf"))
        self.assertIn("force_original_aspect_ratio=decrease", value("-vf"))
        self.assertEqual(value("-c:v"), "libx264")
        self.assertEqual(value("-preset"), "ultrafast")
        self.assertEqual(value("-crf"), "28")
        self.assertEqual(value("-maxrate"), "2500k")
        self.assertEqual(value("-bufsize"), "5000k")
        self.assertEqual(value("-threads"), "1")
        self.assertEqual(value("-b:a"), "128k")
        self.assertEqual(value("-hls_time"), "6")
        self.assertEqual(value("-hls_playlist_type"), "vod")
        self.assertEqual(value("-hls_flags"), "independent_segments")
        self.assertEqual(value("-hls_segment_filename"), str(self.out_dir / "720p_%03d.ts"))
        self.assertEqual(args[-1], str(self.out_dir / "720p.m3u8"))

    async def test_ladder_encodes_sequentially_in_ladder_order_with_monotonic_progress(self) -> None:
        tools = FakeMediaTools()
        encoder = ResolutionEncoder(runner_factory=tools)
        reported: list[float] = []

        artifacts = await encoder.encode_ladder(self.source, self.out_dir, DEFAULT_LADDER, reported.append)

        self.assertEqual(tools.encoded, ["720p", "480p"])
        self.assertTrue(tools.calls[0][0].endswith("ffprobe"))
        self.assertEqual([artifact.spec.name for artifact in artifacts], ["720p", "480p"])
        self.assertEqual([path.name for path in artifacts[1].segment_paths], ["480p_000.ts", "480p_001.ts"])
        self.assertEqual(reported, sorted(reported))
        self.assertTrue(all(0 <= value <= 80 for value in reported))
        self.assertIn(20.0, reported)
        self.assertIn(60.0, reported)
        self.assertEqual(reported[-1], 80.0)

    async def test_failed_first_rendition_aborts_ladder_with_diagnostic_tail(self) -> None:
        tools = FakeMediaTools(fail_rendition="720p")
        encoder = ResolutionEncoder(runner_factory=tools)

        with self.assertRaises(TranscodeFailedError) as context:
            await encoder.encode_ladder(self.source, self.out_dir, DEFAULT_LADDER)

        error = context.exception
        self.assertEqual(error.code, "TRANSCODE_FAILED")
        self.assertEqual(error.rendition, "720p")
        self.assertEqual(error.exit_code, 1)
        self.assertLessEqual(len(error.diagnostic_tail), 500)
        self.assertTrue(error.diagnostic_tail.endswith("Conversion failed!"))
        self.assertEqual(tools.encoded, ["720p"])

    async def test_failed_second_rendition_surfaces_after_first_completes(self) -> None:
        tools = FakeMediaTools(fail_rendition="480p")
        encoder = ResolutionEncoder(runner_factory=tools)
        reported: list[float] = []

        with self.assertRaises(TranscodeFailedError) as context:
            await encoder.encode_ladder(self.source, self.out_dir, DEFAULT_LADDER, reported.append)

        self.assertEqual(context.exception.rendition, "480p")
        self.assertEqual(tools.encoded, ["720p", "480p"])
        self.assertIn(40.0, reported)
        self.assertLess(max(reported), 80.0)

    async def test_probe_failures_raise_before_any_encode(self) -> None:
        cases = {
            "non-zero exit": FakeMediaTools(probe_exit_code=1),
            "unparsable": FakeMediaTools(duration_output=b"N/A\n"),
            "empty": FakeMediaTools(duration_output=b"\n"),
            "zero length": FakeMediaTools(duration_output=b"0.000000\n"),
        }
        for label, tools in cases.items():
            with self.subTest(label=label):
                encoder = ResolutionEncoder(runner_factory=tools)
                with self.assertRaises(ProbeFailedError) as context:
                    await encoder.encode_ladder(self.source, self.out_dir, DEFAULT_LADDER)
                self.assertEqual(context.exception.code, "PROBE_FAILED")
                self.assertEqual(tools.encoded, [])

    async def test_probe_reads_first_line_of_duration_output(self) -> None:
        encoder = ResolutionEncoder(runner_factory=FakeMediaTools(duration_output=b"12.480000\n"))
        self.assertAlmostEqual(await encoder.probe_duration(self.source), 12.48)

    async def test_check_installation_reports_missing_binary(self) -> None:
        self.assertTrue(await ResolutionEncoder(runner_factory=FakeMediaTools()).check_installation())

        def missing(command: str, args: list[str]) -> FakeProcessRunner:
            return FakeProcessRunner(command, args, ScriptedProcess(spawn_error=True))

        self.assertFalse(await ResolutionEncoder(runner_factory=missing).check_installation())


if __name__ == "__main__":
    unittest.main()

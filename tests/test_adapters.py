import json
import os

import pytest

from clone_worker.adapters import DirectoryJobSourceAdapter, FilesystemStorageAdapter, ManifestCodeGenerator
from clone_worker.exceptions import RegistryCorruptionError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ---------------------------------------------------------------------------
# Watched input directory
# ---------------------------------------------------------------------------

class TestDirectoryJobSource:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def source(self, config, clock):
        adapter = DirectoryJobSourceAdapter(config.INPUT_DIR, stability_threshold_ms=2000, clock=clock)
        adapter.connect()
        return adapter

    def test_file_is_emitted_once_stable(self, source, clock, make_video):
        make_video('clip.mp4')

        assert source.poll_jobs() == []
        clock.advance(1.0)
        assert source.poll_jobs() == []
        clock.advance(1.5)

        jobs = source.poll_jobs()
        assert [job.id for job in jobs] == ['clip.mp4']
        assert source.poll_jobs() == []

    def test_growing_file_restarts_the_timer(self, source, clock, make_video):
        path = make_video('clip.mp4', b'a')
        source.poll_jobs()
        clock.advance(1.9)

        with open(path, 'ab') as f:
            f.write(b'more bytes')
        assert source.poll_jobs() == []

        clock.advance(1.0)
        assert source.poll_jobs() == []
        clock.advance(1.1)
        assert len(source.poll_jobs()) == 1

    def test_ignores_dotfiles_and_other_extensions(self, source, clock, make_video):
        make_video('.partial.mp4')
        make_video('readme.txt')
        make_video('CLIP.MKV')

        source.poll_jobs()
        clock.advance(3)

        assert [job.id for job in source.poll_jobs()] == ['CLIP.MKV']

    def test_zero_threshold_emits_immediately(self, config, make_video):
        make_video('clip.webm')
        source = DirectoryJobSourceAdapter(config.INPUT_DIR, stability_threshold_ms=0)

        assert len(source.poll_jobs()) == 1

    def test_same_name_is_picked_up_again_after_removal(self, source, clock, make_video):
        path = make_video('clip.mp4')
        source.poll_jobs()
        clock.advance(3)
        assert len(source.poll_jobs()) == 1

        os.remove(path)
        source.poll_jobs()
        make_video('clip.mp4')
        source.poll_jobs()
        clock.advance(3)
        assert len(source.poll_jobs()) == 1

    def test_replaced_file_is_emitted_again(self, source, clock, make_video):
        path = make_video('clip.mp4', b'first take')
        source.poll_jobs()
        clock.advance(3)
        assert [job.id for job in source.poll_jobs()] == ['clip.mp4']

        # Archived and re-dropped between two polls
        os.remove(path)
        make_video('clip.mp4', b'second, longer take')

        assert source.poll_jobs() == []
        clock.advance(3)
        assert [job.id for job in source.poll_jobs()] == ['clip.mp4']

    def test_released_job_can_be_emitted_again(self, source, clock, make_video):
        make_video('clip.mp4')
        source.poll_jobs()
        clock.advance(3)
        assert len(source.poll_jobs()) == 1

        source.release_job('clip.mp4')
        source.poll_jobs()
        clock.advance(3)
        assert len(source.poll_jobs()) == 1

    def test_unchanged_file_is_not_emitted_twice(self, source, clock, make_video):
        make_video('clip.mp4')
        source.poll_jobs()
        clock.advance(3)
        assert len(source.poll_jobs()) == 1

        for _ in range(3):
            clock.advance(10)
            assert source.poll_jobs() == []
        clock.advance(3)
        assert len(source.poll_jobs()) == 1


# ---------------------------------------------------------------------------
# Filesystem storage
# ---------------------------------------------------------------------------

class TestFilesystemStorage:

    @pytest.fixture
    def storage(self, config):
        adapter = FilesystemStorageAdapter(config.OUTPUT_DIR, config.PROCESSED_DIR, config.FAILED_DIR)
        adapter.connect()
        return adapter

    def test_analysis_round_trip(self, storage, analysis_result):
        path = storage.save_analysis('clip.mp4', analysis_result)

        assert path.endswith(os.path.join('clip_mp4', 'analysis.json'))
        loaded = storage.load_analysis('clip.mp4')
        assert loaded.metadata == analysis_result.metadata
        assert loaded.color_palettes[0].dominant_colors == ['#ff0000', '#000064']

    def test_same_stem_different_extension_kept_apart(self, storage, analysis_result):
        mp4_path = storage.save_analysis('a.mp4', analysis_result)
        storage.save_prompt('a.mp4', 'from the mp4')
        mov_path = storage.save_analysis('a.mov', analysis_result)
        storage.save_prompt('a.mov', 'from the mov')

        assert os.path.dirname(mp4_path) != os.path.dirname(mov_path)
        with open(os.path.join(os.path.dirname(mp4_path), 'prompt.txt')) as f:
            assert f.read() == 'from the mp4'

    def test_missing_analysis(self, storage):
        assert storage.load_analysis('nothing.mp4') is None

    def test_archive_failed_appends_to_log(self, storage, config, make_video):
        storage.archive_failed(make_video('a.mp4'), 'ProbeError: first', 'Traceback (most recent call last):\n  ...')
        storage.archive_failed(make_video('b.mp4'), 'SanitizeError: second')

        with open(storage.error_log_path) as f:
            log = f.read()
        assert 'a.mp4: ProbeError: first' in log
        assert 'b.mp4: SanitizeError: second' in log
        assert sorted(os.listdir(config.FAILED_DIR)) == ['a.mp4', 'b.mp4', 'error.log']

    def test_archive_failed_without_source(self, storage, config):
        assert storage.archive_failed(os.path.join(config.INPUT_DIR, 'gone.mp4'), 'boom') is None
        assert os.path.exists(storage.error_log_path)

    def test_reclaim_keeps_named_project(self, storage, config):
        for project in ('one_mp4', 'two_mp4'):
            os.makedirs(os.path.join(config.OUTPUT_DIR, project, 'temp_frames'))

        removed = storage.reclaim_storage(keep_project='two.mp4')

        assert removed == [os.path.join(config.OUTPUT_DIR, 'one_mp4', 'temp_frames')]
        assert os.path.isdir(os.path.join(config.OUTPUT_DIR, 'two_mp4', 'temp_frames'))


# ---------------------------------------------------------------------------
# Code-generation manifest
# ---------------------------------------------------------------------------

class TestManifestCodeGenerator:

    def test_writes_manifest_and_registers_once(self, tmp_path, analysis_result):
        generator = ManifestCodeGenerator(str(tmp_path / 'clones'))

        path = generator.generate('travel77.mp4', analysis_result)
        generator.generate('travel77.mp4', analysis_result)

        with open(path) as f:
            manifest = json.load(f)
        assert manifest['id'] == 'Travel77'
        assert manifest['durationInFrames'] == 300
        assert manifest['fps'] == 30
        assert manifest['palette'] == ['#ff0000', '#000064']
        assert generator.read_registry() == ['Travel77']

    def test_leading_digit_gets_prefix(self, tmp_path, analysis_result):
        generator = ManifestCodeGenerator(str(tmp_path))
        path = generator.generate('2024 promo.mov', analysis_result)

        assert os.path.basename(os.path.dirname(path)) == 'Clip2024promo'

    def test_non_list_registry_is_corrupt(self, tmp_path):
        (tmp_path / 'registry.json').write_text('{"Travel77": true}')

        with pytest.raises(RegistryCorruptionError):
            ManifestCodeGenerator(str(tmp_path)).read_registry()

    def test_unparseable_registry_is_corrupt(self, tmp_path):
        (tmp_path / 'registry.json').write_text('[')

        with pytest.raises(RegistryCorruptionError):
            ManifestCodeGenerator(str(tmp_path)).read_registry()

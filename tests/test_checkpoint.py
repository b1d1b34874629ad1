"""Tests for checkpoint persistence and resume."""

from __future__ import annotations

import os
import pickle

import numpy as np
import pytest

from itersolve.checkpoint.checkpointer import (
    CHECKPOINT_FORMAT,
    CHECKPOINT_VERSION,
    Checkpointer,
)
from itersolve.errors import CheckpointError, CheckpointVersionMismatch, ConfigError
from itersolve.optim.state import IterationState, TerminationKind, TerminationReason
from itersolve.runtime.executor import Executor
from itersolve.runtime.spec import ExecutorConfig
from itersolve.utils.helpers import bytes_sha256

from tests.solvers import MomentumDescent, RecordingObserver, SequenceSolver, UnitProblem


@pytest.fixture
def ckpt_dir(tmp_path) -> str:
    return str(tmp_path / 'ckpt')


def _snapshot():
    state = IterationState.initial(np.array([1.0, 2.0]), max_iters=8)
    state.update(np.array([0.5, 1.5]), 2.5)
    state.increment()
    state.update(np.array([0.25, 1.0]), 1.0)
    state.increment()
    return state.snapshot()


def _rewrite_envelope(path: str, **changes) -> None:
    with open(path, 'rb') as fh:
        envelope = pickle.load(fh)
    envelope.update(changes)
    with open(path, 'wb') as fh:
        pickle.dump(envelope, fh)


# ---------------------------------------------------------------------------
# Checkpointer
# ---------------------------------------------------------------------------


class TestCheckpointer:
    def test_due(self, ckpt_dir) -> None:
        ckpt = Checkpointer(ckpt_dir, interval=2)
        assert [ckpt.due(i) for i in range(5)] == [False, False, True, False, True]
        assert Checkpointer(ckpt_dir, interval=0).due(4) is False

    def test_negative_interval(self, ckpt_dir) -> None:
        with pytest.raises(ValueError):
            Checkpointer(ckpt_dir, interval=-1)

    def test_save_and_load(self, ckpt_dir) -> None:
        ckpt = Checkpointer(ckpt_dir, interval=1, name='run')
        path = ckpt.save(_snapshot(), solver_blob=b'opaque', solver_name='Demo',
                         solver_version=3, config={'max_iters': 8})

        assert path == os.path.join(ckpt_dir, 'run.ckpt')
        assert os.listdir(ckpt_dir) == ['run.ckpt']

        loaded = Checkpointer.load(path)
        assert loaded.iteration == 2
        assert loaded.solver_blob == b'opaque'
        assert loaded.solver_name == 'Demo'
        assert loaded.solver_version == 3
        assert loaded.config == {'max_iters': 8}
        assert loaded.created

        state = loaded.to_state()
        assert state.best_cost == 1.0
        np.testing.assert_array_equal(state.best_param, [0.25, 1.0])
        np.testing.assert_array_equal(state.prev_best_param, [0.5, 1.5])
        state.param[0] = 9.0  # restored arrays are writable

    def test_overwrite_keeps_latest(self, ckpt_dir) -> None:
        ckpt = Checkpointer(ckpt_dir)
        first = IterationState.initial(0.0)
        first.increment()
        ckpt.save(first.snapshot())
        ckpt.save(_snapshot())
        assert Checkpointer.load(ckpt.path).iteration == 2
        assert not [n for n in os.listdir(ckpt_dir) if n.endswith('.tmp')]

    def test_maybe_save(self, ckpt_dir) -> None:
        ckpt = Checkpointer(ckpt_dir, interval=3)
        assert ckpt.maybe_save(2, _snapshot()) is False
        assert not os.path.exists(ckpt.path)
        assert ckpt.maybe_save(3, _snapshot()) is True
        assert os.path.exists(ckpt.path)

    def test_missing_file(self, ckpt_dir) -> None:
        with pytest.raises(CheckpointError, match='not found'):
            Checkpointer.load(os.path.join(ckpt_dir, 'nope.ckpt'))

    @pytest.mark.parametrize('content', [b'', b'\x00\x01garbage'])
    def test_unreadable_file(self, tmp_path, content) -> None:
        path = tmp_path / 'bad.ckpt'
        path.write_bytes(content)
        with pytest.raises(CheckpointError) as info:
            Checkpointer.load(str(path))
        assert not isinstance(info.value, CheckpointVersionMismatch)

    def test_pickle_referencing_missing_module(self, tmp_path) -> None:
        path = tmp_path / 'foreign.ckpt'
        path.write_bytes(b'cnonexistent_mod\nThing\n.')
        with pytest.raises(CheckpointError, match='Unreadable checkpoint') as info:
            Checkpointer.load(str(path))
        assert not isinstance(info.value, CheckpointVersionMismatch)

    def test_payload_referencing_missing_module(self, tmp_path) -> None:
        payload = b'cnonexistent_mod\nThing\n.'
        path = tmp_path / 'foreign_payload.ckpt'
        path.write_bytes(pickle.dumps({
            'format': CHECKPOINT_FORMAT,
            'version': CHECKPOINT_VERSION,
            'digest': bytes_sha256(payload),
            'payload': payload,
        }))
        with pytest.raises(CheckpointError, match='Unreadable checkpoint payload'):
            Checkpointer.load(str(path))

    def test_version_mismatch(self, ckpt_dir) -> None:
        path = Checkpointer(ckpt_dir).save(_snapshot())
        _rewrite_envelope(path, version=CHECKPOINT_VERSION + 1)
        with pytest.raises(CheckpointVersionMismatch) as info:
            Checkpointer.load(path)
        assert info.value.expected == CHECKPOINT_VERSION
        assert info.value.found == CHECKPOINT_VERSION + 1

    def test_foreign_format(self, ckpt_dir) -> None:
        path = Checkpointer(ckpt_dir).save(_snapshot())
        _rewrite_envelope(path, format='something-else')
        with pytest.raises(CheckpointVersionMismatch):
            Checkpointer.load(path)

    def test_non_envelope_pickle(self, tmp_path) -> None:
        path = tmp_path / 'list.ckpt'
        path.write_bytes(pickle.dumps([1, 2, 3]))
        with pytest.raises(CheckpointVersionMismatch):
            Checkpointer.load(str(path))

    def test_corrupted_payload(self, ckpt_dir) -> None:
        path = Checkpointer(ckpt_dir).save(_snapshot())
        with open(path, 'rb') as fh:
            envelope = pickle.load(fh)
        assert envelope['format'] == CHECKPOINT_FORMAT
        payload = bytearray(envelope['payload'])
        payload[-2] ^= 0xFF
        _rewrite_envelope(path, payload=bytes(payload))
        with pytest.raises(CheckpointError, match='digest'):
            Checkpointer.load(path)

    def test_unwritable_directory(self, tmp_path) -> None:
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        ckpt = Checkpointer(str(blocker / 'sub'))
        with pytest.raises(CheckpointError):
            ckpt.save(_snapshot())


# ---------------------------------------------------------------------------
# Executor integration
# ---------------------------------------------------------------------------


class TestExecutorCheckpointing:
    def test_periodic_saves(self, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=5, checkpoint_dir=ckpt_dir, checkpoint_interval=2)
        executor = Executor(UnitProblem(), SequenceSolver([3.0, 2.0, 1.0]), init_param=0.0,
                            config=config)
        executor.run()

        checkpoint = Checkpointer.load(executor.checkpointer.path)
        assert checkpoint.iteration == 4
        assert checkpoint.solver_blob is None
        assert checkpoint.solver_name == 'SequenceSolver'
        assert checkpoint.config['max_iters'] == 5

    def test_interval_without_directory(self) -> None:
        with pytest.raises(ConfigError):
            ExecutorConfig(max_iters=5, checkpoint_interval=2).validate()

    def test_resume_matches_uninterrupted_run(self, quadratic, x0, ckpt_dir) -> None:
        straight = Executor(quadratic, MomentumDescent(), init_param=x0,
                            config=ExecutorConfig(max_iters=10)).run()

        first = Executor(
            quadratic,
            MomentumDescent(),
            init_param=x0,
            config=ExecutorConfig(max_iters=5, checkpoint_dir=ckpt_dir, checkpoint_interval=5),
        )
        first.run()

        recorder = RecordingObserver()
        resumed = Executor.from_checkpoint(
            first.checkpointer.path, quadratic, MomentumDescent(),
            config=ExecutorConfig(max_iters=10),
        )
        resumed.add_observer(recorder)
        result = resumed.run()

        assert recorder.snapshots[0].iteration == 6
        assert result.iteration_count == 10
        np.testing.assert_array_equal(result.best_param, straight.best_param)
        assert result.best_cost == straight.best_cost
        assert result.cost_count == straight.cost_count
        assert result.gradient_count == straight.gradient_count
        assert result.termination_reason == TerminationReason.max_iterations()

    def test_resume_with_stored_config_stops_at_ceiling(self, quadratic, x0, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=3, checkpoint_dir=ckpt_dir, checkpoint_interval=1)
        first = Executor(quadratic, MomentumDescent(), init_param=x0, config=config)
        first_result = first.run()

        solver = MomentumDescent()
        result = Executor.from_checkpoint(first.checkpointer.path, quadratic, solver).run()
        assert result.iteration_count == 3
        assert result.termination_reason.kind == TerminationKind.MAX_ITERATIONS_REACHED
        np.testing.assert_array_equal(result.best_param, first_result.best_param)

    def test_resume_restores_best_exactly(self, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=4, checkpoint_dir=ckpt_dir, checkpoint_interval=4)
        first = Executor(UnitProblem(), SequenceSolver([5.0, 1.0, 3.0, 4.0]), init_param=0.0,
                         config=config)
        first.run()

        recorder = RecordingObserver()
        resumed = Executor.from_checkpoint(
            first.checkpointer.path, UnitProblem(), SequenceSolver([9.0]),
            config=ExecutorConfig(max_iters=6),
        ).add_observer(recorder)
        result = resumed.run()

        assert [s.iteration for s in recorder.snapshots] == [5, 6]
        assert result.best_cost == 1.0
        assert result.best_param == 2.0

    def test_abort_forces_checkpoint(self, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=100, checkpoint_dir=ckpt_dir, checkpoint_interval=50)
        executor = Executor(UnitProblem(), SequenceSolver([3.0, 2.0, 1.0]), init_param=0.0,
                            config=config)

        class _Stop(RecordingObserver):
            def observe(self, snapshot, is_final):
                super().observe(snapshot, is_final)
                if snapshot.iteration == 3:
                    executor.abort()

        executor.add_observer(_Stop())
        executor.run()

        checkpoint = Checkpointer.load(executor.checkpointer.path)
        assert checkpoint.iteration == 3
        assert checkpoint.state['termination_reason']['kind'] == 'user_aborted'

    def test_solver_snapshot_version_mismatch(self, quadratic, x0, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=2, checkpoint_dir=ckpt_dir, checkpoint_interval=1)
        first = Executor(quadratic, MomentumDescent(), init_param=x0, config=config)
        first.run()

        class MomentumDescentV2(MomentumDescent):
            snapshot_version = 2

        with pytest.raises(CheckpointVersionMismatch):
            Executor.from_checkpoint(first.checkpointer.path, quadratic, MomentumDescentV2())

    def test_solver_state_needs_resumable_solver(self, quadratic, x0, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=2, checkpoint_dir=ckpt_dir, checkpoint_interval=1)
        first = Executor(quadratic, MomentumDescent(), init_param=x0, config=config)
        first.run()

        with pytest.raises(CheckpointError, match='not Resumable'):
            Executor.from_checkpoint(first.checkpointer.path, quadratic, SequenceSolver([1.0]))

    def test_direction_cannot_change_on_resume(self, ckpt_dir) -> None:
        config = ExecutorConfig(max_iters=2, checkpoint_dir=ckpt_dir, checkpoint_interval=1)
        first = Executor(UnitProblem(), SequenceSolver([1.0]), init_param=0.0, config=config)
        first.run()

        with pytest.raises(ConfigError):
            Executor.from_checkpoint(first.checkpointer.path, UnitProblem(), SequenceSolver([1.0]),
                                     config=ExecutorConfig(max_iters=4, maximize=True))

    def test_checkpoint_errors_are_collected(self, tmp_path) -> None:
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        config = ExecutorConfig(max_iters=3, checkpoint_dir=str(blocker / 'sub'),
                                checkpoint_interval=1)
        result = Executor(UnitProblem(), SequenceSolver([1.0]), init_param=0.0,
                          config=config).run()

        assert result.iteration_count == 3
        assert len(result.checkpoint_errors) == 3
        assert 'checkpoint errors' in result.summary()

    def test_fatal_checkpoint_errors(self, tmp_path) -> None:
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        config = ExecutorConfig(max_iters=3, checkpoint_dir=str(blocker / 'sub'),
                                checkpoint_interval=1, fatal_checkpoint_errors=True)
        executor = Executor(UnitProblem(), SequenceSolver([1.0]), init_param=0.0, config=config)
        with pytest.raises(CheckpointError):
            executor.run()

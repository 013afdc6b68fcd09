"""Split a behavioural dataset into sessions."""

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
import pandas as pd

from .utils import make_session_id


@dataclass(frozen=True)
class Session:
    """The observations and actions of one session.

    Parameters
    ----------
    session_id
        The id of the session, built from the grouping column values.
    group_values
        The values of the grouping columns for this session.
    observations
        One tuple of observation values per timestep.
    actions
        One tuple of action values per timestep. Missing actions are None.
    """

    session_id: str
    group_values: tuple
    observations: tuple[tuple, ...]
    actions: tuple[tuple, ...]

    def __post_init__(self):
        """Check that the sequences have equal length."""
        if len(self.observations) != len(self.actions):
            raise ValueError(
                f"Session '{self.session_id}' has {len(self.observations)} "
                f"observations but {len(self.actions)} actions."
            )

    @property
    def n_timesteps(self) -> int:
        """The number of timesteps in the session."""
        return len(self.actions)

    @property
    def missing_actions(self) -> list[tuple[int, int]]:
        """The (timestep, action index) pairs where the action is missing."""
        return [
            (t, k)
            for t, actions in enumerate(self.actions)
            for k, action in enumerate(actions)
            if action is None
        ]


@dataclass(frozen=True)
class SessionBatch:
    """All sessions of a dataset, in order of first appearance.

    Parameters
    ----------
    sessions
        The sessions.
    session_cols
        The grouping columns whose value combinations define the sessions.
    observation_cols
        The observation columns, in the order passed to the step function.
    action_cols
        The action columns, in the order returned by the step function.
    session_data : optional
        One row per session with the grouping columns and any other column that
        is constant within sessions. Used to build regression design matrices.
    """

    sessions: tuple[Session, ...]
    session_cols: tuple[str, ...]
    observation_cols: tuple[str, ...]
    action_cols: tuple[str, ...]
    session_data: pd.DataFrame = field(default_factory=pd.DataFrame, compare=False)

    def __post_init__(self):
        """Check that the sessions have a consistent shape."""
        if not self.sessions:
            raise ValueError("There are no sessions in the data.")
        for session in self.sessions:
            for obs, actions in zip(session.observations, session.actions):
                if len(obs) != len(self.observation_cols) or len(actions) != len(
                    self.action_cols
                ):
                    raise ValueError(
                        f"Session '{session.session_id}' does not have "
                        f"{len(self.observation_cols)} observation(s) and "
                        f"{len(self.action_cols)} action(s) at every timestep."
                    )

    @property
    def n_sessions(self) -> int:
        """The number of sessions."""
        return len(self.sessions)

    @property
    def session_ids(self) -> list[str]:
        """The session ids, in session order."""
        return [session.session_id for session in self.sessions]

    @property
    def has_missing_actions(self) -> bool:
        """Whether any action in any session is missing."""
        return any(session.missing_actions for session in self.sessions)

    @property
    def max_timesteps(self) -> int:
        """The length of the longest session."""
        return max(session.n_timesteps for session in self.sessions)

    def __len__(self) -> int:
        """Return the number of sessions."""
        return self.n_sessions

    def __iter__(self):
        """Iterate over sessions."""
        return iter(self.sessions)

    def __getitem__(self, index: int) -> Session:
        """Return one session."""
        return self.sessions[index]

    @classmethod
    def from_dataframe(
        cls,
        data: pd.DataFrame,
        observation_cols: Sequence[str],
        action_cols: Sequence[str],
        session_cols: Sequence[str],
    ) -> "SessionBatch":
        """Split a dataframe into sessions.

        Rows are kept in their order within each session. Sessions are ordered by
        the first appearance of their grouping values. NaN actions become None.
        """
        observation_cols = tuple(observation_cols)
        action_cols = tuple(action_cols)
        session_cols = tuple(session_cols)

        if not session_cols:
            groups: list[tuple[tuple, pd.DataFrame]] = [((), data)]
        else:
            groups = [
                (key if isinstance(key, tuple) else (key,), group)
                for key, group in data.groupby(list(session_cols), sort=False)
            ]

        sessions = []
        for key, group in groups:
            if observation_cols:
                observations = tuple(
                    tuple(_to_python(value) for value in row)
                    for row in group[list(observation_cols)].itertuples(index=False)
                )
            else:
                observations = tuple(() for _ in range(len(group)))
            actions = tuple(
                tuple(_to_action(value) for value in row)
                for row in group[list(action_cols)].itertuples(index=False)
            )
            sessions.append(
                Session(
                    session_id=make_session_id(session_cols, key),
                    group_values=tuple(_to_python(value) for value in key),
                    observations=observations,
                    actions=actions,
                )
            )

        if session_cols:
            session_data = data.drop_duplicates(subset=list(session_cols)).reset_index(
                drop=True
            )
        else:
            session_data = data.iloc[:1].reset_index(drop=True)

        return cls(
            sessions=tuple(sessions),
            session_cols=session_cols,
            observation_cols=observation_cols,
            action_cols=action_cols,
            session_data=session_data,
        )

    @classmethod
    def from_sequences(
        cls,
        observations: Sequence[Any],
        actions: Sequence[Any],
        session_id: str = "session",
    ) -> "SessionBatch":
        """Make a single-session batch from sequences of observations and actions.

        Each element is a plain value, or a tuple when there are several
        observations or actions per timestep.

        Raises
        ------
        ValueError
            If the sequences differ in length, or their elements in tuple length.
        """
        if len(observations) != len(actions):
            raise ValueError(
                "The observations and actions must have the same length, got "
                f"{len(observations)} and {len(actions)}."
            )
        obs_tuples = tuple(_as_tuple(obs) for obs in observations)
        action_tuples = tuple(
            tuple(_to_action(a) for a in _as_tuple(action)) for action in actions
        )
        for name, tuples in (("observations", obs_tuples), ("actions", action_tuples)):
            if len({len(item) for item in tuples}) > 1:
                raise ValueError(f"All {name} must have the same number of values.")

        n_obs = len(obs_tuples[0]) if obs_tuples else 0
        n_actions = len(action_tuples[0]) if action_tuples else 1
        session = Session(
            session_id=session_id,
            group_values=(session_id,),
            observations=obs_tuples,
            actions=action_tuples,
        )
        return cls(
            sessions=(session,),
            session_cols=("session",),
            observation_cols=tuple(f"observation_{i}" for i in range(n_obs)),
            action_cols=tuple(f"action_{i}" for i in range(n_actions)),
            session_data=pd.DataFrame({"session": [session_id]}),
        )


def _as_tuple(value: Any) -> tuple:
    return value if isinstance(value, tuple) else (value,)


def _to_python(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def _to_action(value: Any) -> Any:
    if value is None:
        return None
    if np.ndim(value) == 0 and pd.isna(value):
        return None
    return _to_python(value)

from typing import Any

from pydantic import BaseModel, ConfigDict

# Names the initial page before any real target id is known
MAIN_TARGET_ID = 'main'


class Target(BaseModel):
	"""Browser target (page, iframe, worker) - the actual entity being controlled.

	Owned by the engine. The session pool only references it by id.
	"""

	model_config = ConfigDict(revalidate_instances='never')

	target_id: str
	target_type: str = 'page'  # 'page', 'iframe', 'worker', etc.
	url: str = 'about:blank'
	title: str = 'Unknown title'


class CDPSession(BaseModel):
	"""A live command channel to one target, as handed out by the session pool.

	connection is whatever the engine returned from attach(). At most one live session
	exists per target, and once invalidated a session is never handed out again.
	"""

	model_config = ConfigDict(arbitrary_types_allowed=True, revalidate_instances='never')

	target_id: str
	session_id: str
	connection: Any = None
	created_at: float
	last_used_at: float

	def idle_time(self, now: float) -> float:
		return now - self.last_used_at

	def __str__(self) -> str:
		return f'CDPSession(target=…{self.target_id[-4:]}, session=…{self.session_id[-4:]})'


class AgentFocus(BaseModel):
	"""Which target, session and page the next action applies to.

	Immutable: writers replace the whole value so readers never observe a half-updated focus.
	"""

	model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

	target_id: str = MAIN_TARGET_ID
	session_id: str | None = None
	page: Any = None

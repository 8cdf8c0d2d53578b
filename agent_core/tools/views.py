from pydantic import BaseModel, ConfigDict, Field


# Action Input Models
class SearchAction(BaseModel):
	query: str
	engine: str = Field(
		default='duckduckgo', description='duckduckgo, google, bing (use duckduckgo by default because less captchas)'
	)


class NavigateAction(BaseModel):
	url: str
	new_tab: bool = Field(default=False)


class ClickElementAction(BaseModel):
	selector: str = Field(min_length=1, description='CSS selector of the element to click')


class InputTextAction(BaseModel):
	selector: str = Field(min_length=1, description='CSS selector of the input element')
	text: str
	clear: bool = Field(default=True, description='1=clear, 0=append')
	submit: bool = Field(default=False, description='Press Enter after typing')


class ScrollAction(BaseModel):
	down: bool = Field(default=True, description='down=True=scroll down, down=False scroll up')
	pages: float = Field(default=1.0, gt=0, description='0.5=half page, 1=full page, 10=to bottom/top')


class SendKeysAction(BaseModel):
	keys: str = Field(min_length=1, description='keys (Escape, Enter, PageDown) or shortcuts (Control+o)')


class SwitchTabAction(BaseModel):
	target_id: str = Field(min_length=1, description='Target id of the tab to focus')


class CloseTabAction(BaseModel):
	target_id: str = Field(min_length=1, description='Target id of the tab to close')


class ExtractAction(BaseModel):
	selector: str | None = Field(default=None, description='CSS selector to limit extraction, whole body if not set')
	max_chars: int = Field(default=20000, ge=1, description='Truncate extracted text to this many characters')


class ScreenshotAction(BaseModel):
	model_config = ConfigDict(extra='ignore')

	full_page: bool = Field(default=False, description='Capture beyond the viewport')


class DoneAction(BaseModel):
	text: str = Field(description='Final user message in the format the user requested')
	success: bool = Field(default=True, description='True if user_request completed successfully')


class NoParamsAction(BaseModel):
	model_config = ConfigDict(extra='ignore')

	description: str | None = Field(None, description='Optional description for the action')

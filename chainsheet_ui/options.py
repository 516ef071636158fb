from __future__ import annotations

import tkinter as tk
from dataclasses import replace
from typing import Callable, Dict, List, Tuple

from chainsheet.settings import ProviderType, Settings

BG_COLOR = "#2b2d31"
FG_COLOR = "#f5f5f5"
LABEL_COLOR = "#e6e6e6"
ENTRY_BG = "#3b3d44"

DEFAULT_HOSTED_MODELS: List[str] = [
    "gpt-4o-mini",
    "gpt-4o",
    "gpt-4.1-mini",
    "gpt-4.1",
    "gpt-4.1-nano",
]

PROVIDER_ORDER: Tuple[ProviderType, ...] = (ProviderType.HOSTED, ProviderType.LOCAL)
PROVIDER_LABELS: Dict[ProviderType, str] = {
    ProviderType.HOSTED: "Hosted model (OpenAI)",
    ProviderType.LOCAL: "Local LLM (OpenAI-compatible HTTP)",
}
LABEL_TO_PROVIDER: Dict[str, ProviderType] = {label: provider for provider, label in PROVIDER_LABELS.items()}


class OptionsWindow(tk.Toplevel):
    """Modal form base: subclasses build widgets and collect a result."""

    def __init__(self, master: tk.Misc, title: str, on_close: Callable[[], None] | None = None) -> None:
        super().__init__(master)
        self._on_close_cb = on_close
        self._closed = False

        self.title(title)
        self.configure(bg=BG_COLOR)
        self.transient(master)
        self.resizable(False, False)
        self.protocol("WM_DELETE_WINDOW", self._handle_cancel)
        self.bind("<Escape>", lambda _e: self._handle_cancel())

        self.body = tk.Frame(self, bg=BG_COLOR)
        self.body.pack(fill=tk.BOTH, expand=True, padx=16, pady=16)
        self._build_body()

        btn_frame = tk.Frame(self, bg=BG_COLOR)
        btn_frame.pack(fill=tk.X, padx=16, pady=(0, 16))
        tk.Button(btn_frame, text="Save", command=self._handle_save).pack(side=tk.RIGHT, padx=4)
        tk.Button(btn_frame, text="Cancel", command=self._handle_cancel).pack(side=tk.RIGHT)

        try:
            self.grab_set()
        except tk.TclError:
            pass

    # -- helpers --
    def _label(self, text: str, parent: tk.Misc | None = None) -> None:
        target = parent or self.body
        tk.Label(target, text=text, anchor="w", bg=BG_COLOR, fg=LABEL_COLOR).pack(fill=tk.X, pady=(0, 4))

    def _entry(self, var: tk.Variable, parent: tk.Misc | None = None, **kw) -> tk.Entry:
        target = parent or self.body
        ent = tk.Entry(target, textvariable=var, bg=ENTRY_BG, fg=FG_COLOR, insertbackground=FG_COLOR, **kw)
        ent.pack(fill=tk.X, pady=(0, 12))
        return ent

    def _option_menu(
        self,
        var: tk.StringVar,
        values: List[str],
        parent: tk.Misc | None = None,
        command: Callable[[str], None] | None = None,
    ) -> tk.OptionMenu:
        target = parent or self.body
        opts = values or ["<none>"]
        menu = tk.OptionMenu(target, var, *opts, command=command)
        menu.configure(bg=ENTRY_BG, fg=FG_COLOR, activebackground=ENTRY_BG, activeforeground=FG_COLOR, highlightthickness=0)
        menu["menu"].configure(bg=ENTRY_BG, fg=FG_COLOR, activebackground=BG_COLOR, activeforeground=FG_COLOR)
        menu.pack(fill=tk.X, pady=(0, 12))
        return menu

    def _build_body(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _apply(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _handle_save(self) -> None:
        self._apply()
        self.destroy()

    def _handle_cancel(self) -> None:
        self.destroy()

    def destroy(self) -> None:  # noqa: D401
        """Ensure the close callback fires once when the window is destroyed."""

        if not self._closed:
            self._closed = True
            if self._on_close_cb is not None:
                self._on_close_cb()
        super().destroy()


class SettingsWindow(OptionsWindow):
    """Provider selection plus per-provider connection fields.

    Saving hands a complete new ``Settings`` to ``on_save``; nothing is
    written to the current object.
    """

    def __init__(
        self,
        master: tk.Misc,
        current: Settings,
        on_save: Callable[[Settings], None],
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._current = current
        self._on_save_cb = on_save
        super().__init__(master, "Settings", on_close)

    def _build_body(self) -> None:
        cur = self._current
        self.provider = tk.StringVar(value=cur.provider.value)
        self.provider_label = tk.StringVar(value=PROVIDER_LABELS[cur.provider])
        self.hosted_model = tk.StringVar(value=cur.hosted_model_name or DEFAULT_HOSTED_MODELS[0])
        self.hosted_api_key = tk.StringVar(value=cur.hosted_api_key or "")
        self.local_base_url = tk.StringVar(value=cur.local_base_url)
        self.local_model = tk.StringVar(value=cur.local_model_name)

        self._label("Provider")
        self._option_menu(
            self.provider_label,
            [PROVIDER_LABELS[p] for p in PROVIDER_ORDER],
            command=self._on_provider_label_change,
        )

        self.dynamic_frame = tk.Frame(self.body, bg=BG_COLOR)
        self.dynamic_frame.pack(fill=tk.BOTH, expand=True, pady=(0, 12))
        self._render_provider_options()

    def _on_provider_label_change(self, selection: str) -> None:
        provider = LABEL_TO_PROVIDER.get(selection, ProviderType.HOSTED)
        if provider.value != self.provider.get():
            self.provider.set(provider.value)
            self._render_provider_options()

    def _render_provider_options(self) -> None:
        for child in self.dynamic_frame.winfo_children():
            child.destroy()
        if self.provider.get() == ProviderType.LOCAL.value:
            self._build_local_options(self.dynamic_frame)
        else:
            self._build_hosted_options(self.dynamic_frame)

    def _build_hosted_options(self, parent: tk.Misc) -> None:
        models = list(DEFAULT_HOSTED_MODELS)
        current = self.hosted_model.get().strip()
        if current and current not in models:
            models.insert(0, current)
        self._label("Model", parent)
        self._option_menu(self.hosted_model, models, parent)
        self._label("API key (blank uses OPENAI_API_KEY)", parent)
        self._entry(self.hosted_api_key, parent, show="*")

    def _build_local_options(self, parent: tk.Misc) -> None:
        self._label("Base URL", parent)
        self._entry(self.local_base_url, parent)
        self._label("Model name", parent)
        self._entry(self.local_model, parent)

    def collect(self) -> Settings:
        cur = self._current
        return replace(
            cur,
            provider=ProviderType(self.provider.get()),
            hosted_model_name=self.hosted_model.get().strip() or DEFAULT_HOSTED_MODELS[0],
            hosted_api_key=self.hosted_api_key.get().strip() or None,
            local_base_url=self.local_base_url.get().strip() or cur.local_base_url,
            local_model_name=self.local_model.get().strip() or cur.local_model_name,
        )

    def _apply(self) -> None:
        self._on_save_cb(self.collect())

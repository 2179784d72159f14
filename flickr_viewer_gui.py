#!/usr/bin/env python3
"""GUI for the Flickr Viewer application."""

import os
import threading
import tkinter as tk
from tkinter import ttk, scrolledtext, messagebox, filedialog

from PIL import ImageTk

import flickr_viewer as core
from image_store import ImagePersister, load_preview
from naming import CounterRegistry
from selection import SelectionPipeline
from viewer_settings import (
    ENV_NAME, SETTINGS_NAME, get_base_path, load_credentials, load_settings,
    save_settings,
)

PREVIEW_SIZE = (480, 360)

SETTINGS_FILE = os.path.join(get_base_path(), SETTINGS_NAME)


class FlickrViewerApp:
    def __init__(self, root):
        self.root = root
        self.root.title("Flickr Viewer")
        self.root.geometry("900x700")

        self.viewer = None
        self.results = []
        self._preview_image = None
        self._searching = False

        # Counters live for the whole process, across searches
        self.pipeline = SelectionPipeline(
            fetch=self._fetch_bytes,
            persister=ImagePersister(CounterRegistry()),
            display=self._show_image,
        )
        self.pipeline.set_callbacks(log_cb=self._log_msg)

        self._build_ui()
        self._load_settings()

        # Save settings automatically when the window is closed
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    # ================================================================
    # UI Construction
    # ================================================================

    def _build_ui(self):
        # --- Credentials frame ---
        cred_frame = ttk.LabelFrame(self.root, text="Flickr API Credentials", padding=10)
        cred_frame.pack(fill="x", padx=10, pady=(10, 5))

        ttk.Label(cred_frame, text="API Key:").grid(row=0, column=0, sticky="w")
        self.api_key_var = tk.StringVar()
        ttk.Entry(cred_frame, textvariable=self.api_key_var, width=55).grid(
            row=0, column=1, padx=(5, 0), pady=2
        )

        ttk.Label(cred_frame, text="API Secret:").grid(row=1, column=0, sticky="w")
        self.api_secret_var = tk.StringVar()
        ttk.Entry(cred_frame, textvariable=self.api_secret_var, width=55, show="*").grid(
            row=1, column=1, padx=(5, 0), pady=2
        )

        # --- Search bar ---
        search_frame = ttk.Frame(self.root, padding=(10, 5))
        search_frame.pack(fill="x", padx=10)

        ttk.Label(search_frame, text="Tags:").pack(side="left")
        self.search_var = tk.StringVar()
        search_entry = ttk.Entry(search_frame, textvariable=self.search_var, width=40)
        search_entry.pack(side="left", padx=(5, 5))
        search_entry.bind("<Return>", lambda event: self._start_search())
        self.search_btn = ttk.Button(
            search_frame, text="Search", command=self._start_search
        )
        self.search_btn.pack(side="left")

        ttk.Label(search_frame, text="Save to:").pack(side="left", padx=(15, 0))
        self.folder_var = tk.StringVar(value=os.getcwd())
        ttk.Entry(search_frame, textvariable=self.folder_var, width=30).pack(
            side="left", padx=(5, 5)
        )
        ttk.Button(search_frame, text="Browse...", command=self._browse_folder).pack(
            side="left"
        )

        # --- Results list + selected image ---
        body = ttk.Frame(self.root, padding=(10, 5))
        body.pack(fill="both", expand=True, padx=10)
        body.columnconfigure(1, weight=1)
        body.rowconfigure(0, weight=1)

        list_frame = ttk.LabelFrame(body, text="Results", padding=2)
        list_frame.grid(row=0, column=0, sticky="nsew")
        self.results_list = tk.Listbox(list_frame, width=35, exportselection=False)
        scrollbar = ttk.Scrollbar(
            list_frame, orient="vertical", command=self.results_list.yview
        )
        self.results_list.configure(yscrollcommand=scrollbar.set)
        scrollbar.pack(side="right", fill="y")
        self.results_list.pack(side="left", fill="both", expand=True)
        self.results_list.bind("<<ListboxSelect>>", self._on_select)

        image_frame = ttk.LabelFrame(body, text="Selected", padding=2)
        image_frame.grid(row=0, column=1, sticky="nsew", padx=(10, 0))
        self.image_label = ttk.Label(image_frame, anchor="center")
        self.image_label.pack(fill="both", expand=True)

        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(self.root, textvariable=self.status_var, font=("", 8)).pack(
            anchor="w", padx=20
        )

        # --- Log ---
        log_frame = ttk.LabelFrame(self.root, text="Log", padding=5)
        log_frame.pack(fill="both", padx=10, pady=(5, 10))

        self.log = scrolledtext.ScrolledText(log_frame, height=8, state="disabled")
        self.log.pack(fill="both", expand=True)

    def _browse_folder(self):
        folder = filedialog.askdirectory(
            initialdir=self.folder_var.get(), title="Select Save Folder"
        )
        if folder:
            self.folder_var.set(folder)

    # ================================================================
    # Search
    # ================================================================

    def _start_search(self):
        if self._searching:
            return

        api_key = self.api_key_var.get().strip()
        api_secret = self.api_secret_var.get().strip()
        if not api_key or not api_secret:
            messagebox.showerror("Error", "API Key and API Secret are required.")
            return

        text = self.search_var.get()
        if not text.strip():
            messagebox.showerror("Error", "Enter one or more tags to search.")
            return

        self._searching = True
        self.search_btn.config(state="disabled")
        self.results = []
        self.results_list.delete(0, "end")
        self.results_list.insert("end", "Loading...")
        self.image_label.config(image="")
        self._preview_image = None

        self.viewer = core.FlickrViewer(api_key, api_secret)
        self.viewer.set_callbacks(log_cb=self._log_msg)
        self.pipeline.base_dir = self.folder_var.get() or os.getcwd()
        self.pipeline.start_search(text)

        thread = threading.Thread(target=self._run_search, args=(text,), daemon=True)
        thread.start()

    def _run_search(self, text):
        try:
            results = self.viewer.search_tags(text)
        except core.SearchError as e:
            self.root.after(0, self._finish_search_error, str(e))
            return
        self.root.after(0, self._finish_search, results)

    def _finish_search(self, results):
        self._searching = False
        self.search_btn.config(state="normal")
        self.results_list.delete(0, "end")

        if not results:
            self.results_list.insert("end", "No matches")
            self.status_var.set("No photos found.")
            return

        self.results = results
        for result in results:
            self.results_list.insert("end", str(result))
        self.status_var.set(f"{len(results)} results found.")

    def _finish_search_error(self, error):
        self._searching = False
        self.search_btn.config(state="normal")
        self.results_list.delete(0, "end")
        self.status_var.set(f"Error: {error}")
        messagebox.showerror("Search failed", error)

    # ================================================================
    # Selection
    # ================================================================

    def _on_select(self, event=None):
        selection = self.results_list.curselection()
        if not selection or not self.results:
            return
        result = self.results[selection[0]]
        tag = self.pipeline.current_search
        base_dir = self.pipeline.base_dir

        self.status_var.set(f"Loading '{result.title}'...")
        thread = threading.Thread(
            target=self._run_selection, args=(result, tag, base_dir), daemon=True
        )
        thread.start()

    def _run_selection(self, result, tag, base_dir):
        try:
            report = self.pipeline.select(result, search_tag=tag, base_dir=base_dir)
        except core.FetchError as e:
            self._log_msg(f"Error: {e}")
            self.root.after(0, self._finish_selection_error, str(e))
            return
        except OSError as e:
            self._log_msg(f"Error: could not create folders: {e}")
            self.root.after(0, self._finish_selection_error, str(e))
            return
        self.root.after(0, self._finish_selection, report)

    def _finish_selection(self, report):
        if report.ok:
            self.status_var.set(f"Saved '{report.result.title}'")
        else:
            self.status_var.set(
                f"Saved '{report.result.title}' with {len(report.errors)} error(s)"
            )

    def _finish_selection_error(self, error):
        self.status_var.set(f"Error: {error}")
        messagebox.showerror("Download failed", error)

    def _fetch_bytes(self, url):
        return self.viewer.fetch_bytes(url)

    def _show_image(self, data):
        """Decode on the worker thread, hand the image to the Tk thread."""
        self.root.after(0, self._set_preview, load_preview(data, PREVIEW_SIZE))

    def _set_preview(self, image):
        self._preview_image = ImageTk.PhotoImage(image)
        self.image_label.config(image=self._preview_image)

    # ================================================================
    # Log
    # ================================================================

    def _log_msg(self, msg):
        """Thread-safe log append."""
        self.root.after(0, self._append_log, msg)

    def _append_log(self, msg):
        self.log.config(state="normal")
        self.log.insert("end", msg + "\n")
        self.log.see("end")
        self.log.config(state="disabled")

    # ================================================================
    # Settings
    # ================================================================

    def _on_close(self):
        """Save all settings before closing the window."""
        self._save_settings()
        self.root.destroy()

    def _load_settings(self):
        data = load_settings(SETTINGS_FILE)
        api_key, api_secret = load_credentials(
            os.path.join(get_base_path(), ENV_NAME), data
        )
        self.api_key_var.set(api_key)
        self.api_secret_var.set(api_secret)
        if data["save_dir"]:
            self.folder_var.set(data["save_dir"])
        self.search_var.set(data["last_search"])

    def _save_settings(self):
        data = {
            "api_key": self.api_key_var.get(),
            "api_secret": self.api_secret_var.get(),
            "save_dir": self.folder_var.get(),
            "last_search": self.search_var.get(),
        }
        try:
            save_settings(SETTINGS_FILE, data)
        except OSError as e:
            messagebox.showwarning("Settings", f"Could not save settings: {e}")


def main():
    root = tk.Tk()
    FlickrViewerApp(root)
    root.mainloop()


if __name__ == "__main__":
    main()

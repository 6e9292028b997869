"""JavaScript snippets evaluated inside the page during resolution and playback."""

from __future__ import annotations

STYLE_ELEMENT_ID = "playback-renderer-styles"
HIGHLIGHT_CLASS = "playback-highlight"
HOVER_CLASS = "playback-hover"
HIGHLIGHT_OUTLINE = "2px solid #ff6b35"
# inline style before the first mark, JSON encoded so a missing attribute survives as null
PRIOR_STYLE_ATTRIBUTE = "data-playback-prior-style"
MARKER_CLASSES = (HIGHLIGHT_CLASS, HOVER_CLASS)

HIGHLIGHT_CSS = f"""
.{HIGHLIGHT_CLASS} {{
  outline: {HIGHLIGHT_OUTLINE} !important;
  outline-offset: 2px !important;
  background-color: rgba(255, 107, 53, 0.1) !important;
  transition: all 0.3s ease !important;
}}
.{HOVER_CLASS} {{
  background-color: rgba(255, 193, 7, 0.2) !important;
  outline: 1px solid #ffc107 !important;
}}
"""

IS_CONNECTED_SCRIPT = "(element) => element.isConnected"

LABEL_CONTROL_SCRIPT = """
(text) => {
  for (const label of document.querySelectorAll('label')) {
    if ((label.textContent || '').includes(text)) {
      const htmlFor = label.getAttribute('for');
      if (htmlFor) return document.getElementById(htmlFor);
      return label.querySelector('input, textarea, select');
    }
  }
  return null;
}
"""

BUTTON_TEXT_SCRIPT = """
(text) => {
  const wanted = text.trim();
  const buttons = document.querySelectorAll('button, input[type="button"], input[type="submit"]');
  for (const button of buttons) {
    if ((button.textContent || '').trim() === wanted || button.value === text) {
      return button;
    }
  }
  return null;
}
"""

CLOSEST_SCRIPT = "(element, selector) => element.closest(selector)"

IS_VISIBLE_SCRIPT = """
(element) => {
  const style = window.getComputedStyle(element);
  return element.offsetParent !== null && style.display !== 'none' && style.visibility !== 'hidden';
}
"""

IS_INTERACTIVE_SCRIPT = """
(element, {tags, roles}) => {
  if (tags.includes(element.tagName.toLowerCase())) return true;
  const role = element.getAttribute('role');
  if (role && roles.includes(role)) return true;
  return element.onclick !== null || element.style.cursor === 'pointer';
}
"""

CSS_PATH_SCRIPT = """
(element) => {
  if (!(element instanceof Element)) return '';
  if (element.id) return '#' + CSS.escape(element.id);
  const path = [];
  while (element.parentElement) {
    let selector = element.tagName.toLowerCase();
    if (element.id) {
      path.unshift(selector + '#' + CSS.escape(element.id));
      break;
    }
    let nth = 1;
    let sibling = element.previousElementSibling;
    while (sibling) {
      if (sibling.tagName === element.tagName) nth += 1;
      sibling = sibling.previousElementSibling;
    }
    if (nth > 1) selector += `:nth-of-type(${nth})`;
    path.unshift(selector);
    element = element.parentElement;
  }
  return path.join(' > ');
}
"""

CLICK_SCRIPT = "(element) => element.click()"

SET_VALUE_SCRIPT = """
(element, value) => {
  if (typeof element.focus === 'function') element.focus();
  if (element.isContentEditable) {
    element.textContent = value;
  } else {
    element.value = value;
  }
  element.dispatchEvent(new Event('input', {bubbles: true, cancelable: true}));
  element.dispatchEvent(new Event('change', {bubbles: true, cancelable: true}));
}
"""

SELECT_OPTION_SCRIPT = """
(element, value) => {
  if (element.tagName !== 'SELECT') return false;
  element.value = value;
  element.dispatchEvent(new Event('change', {bubbles: true, cancelable: true}));
  return true;
}
"""

SCROLL_INTO_VIEW_SCRIPT = "(element) => element.scrollIntoView({block: 'center', inline: 'nearest'})"

DISPATCH_MOUSE_SCRIPT = """
(element, {events, button}) => {
  for (const type of events) {
    element.dispatchEvent(new MouseEvent(type, {
      bubbles: true,
      cancelable: true,
      view: window,
      button,
    }));
  }
}
"""

SCROLL_SCRIPT = """
({selector, pixels}) => {
  let container = null;
  if (selector) {
    try {
      container = document.querySelector(selector);
    } catch (error) {
      container = null;
    }
  }
  (container || window).scrollBy(0, pixels);
  return container ? 'container' : 'window';
}
"""

INJECT_STYLES_SCRIPT = """
({id, css}) => {
  if (document.getElementById(id)) return false;
  const style = document.createElement('style');
  style.id = id;
  style.textContent = css;
  (document.head || document.documentElement).appendChild(style);
  return true;
}
"""

REMOVE_STYLES_SCRIPT = """
(id) => {
  const style = document.getElementById(id);
  if (style) style.remove();
}
"""

MARK_SCRIPT = """
(element, {className, outline, attribute}) => {
  if (!element.hasAttribute(attribute)) {
    element.setAttribute(attribute, JSON.stringify(element.getAttribute('style')));
  }
  element.classList.add(className);
  if (outline) element.style.outline = outline;
}
"""

UNMARK_SCRIPT = """
(element, {classNames, markers, attribute}) => {
  for (const name of classNames) element.classList.remove(name);
  if (!element.hasAttribute(attribute)) return;
  const prior = JSON.parse(element.getAttribute(attribute));
  if (prior === null) {
    element.removeAttribute('style');
  } else {
    element.setAttribute('style', prior);
  }
  if (!markers.some((name) => element.classList.contains(name))) {
    element.removeAttribute(attribute);
  }
}
"""

_RECORDER_TEMPLATE = """
(() => {
  if (window.__playbackRecorderInstalled) return;
  window.__playbackRecorderInstalled = true;
  const pathOf = __CSS_PATH__;
  const report = (type, target, extra) => {
    const text = ((target.innerText || '') + '').substring(0, 100);
    const payload = Object.assign({type, selector: pathOf(target)}, extra || {});
    if (text) payload.description = text;
    window['__BINDING__'](payload);
  };
  document.addEventListener('click', (e) => report('click', e.target), true);
  document.addEventListener('dblclick', (e) => report('double_click', e.target), true);
  document.addEventListener('contextmenu', (e) => report('right_click', e.target), true);
  document.addEventListener('input', (e) => {
    const tag = e.target.tagName;
    if (tag === 'INPUT' || tag === 'TEXTAREA') report('input', e.target, {value: e.target.value});
  }, true);
  document.addEventListener('change', (e) => {
    if (e.target.tagName === 'SELECT') report('select', e.target, {value: e.target.value});
  }, true);
})()
"""


def recorder_script(binding: str) -> str:
    """Capture-phase listeners reporting user interactions to ``binding``."""

    return _RECORDER_TEMPLATE.replace("__CSS_PATH__", CSS_PATH_SCRIPT.strip()).replace(
        "__BINDING__", binding
    )

"""Page scripts evaluated inside the sandbox.

Every builder returns a self-invoking JavaScript expression whose value is
JSON-serialisable. Arguments are embedded with `json.dumps`, never by string
concatenation, so selectors and user values cannot break out of the script.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence

CANDIDATE_ATTR = "data-aura-candidate"
PARAGRAPH_ATTR = "data-aura-paragraph"
FORM_FIELD_ATTR = "data-aura-field"


def _js(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def candidate_scan_script() -> str:
    """Tag visible clickable elements and return their geometry and text."""

    return f"""(() => {{
  document.querySelectorAll('[{CANDIDATE_ATTR}]').forEach(el => el.removeAttribute('{CANDIDATE_ATTR}'));
  const out = [];
  const elements = document.querySelectorAll('a, button, [role="button"], [onclick]');
  elements.forEach(el => {{
    if (el.offsetParent === null) return;
    const href = el.getAttribute('href') || '';
    if (href.startsWith('#')) return;
    const rect = el.getBoundingClientRect();
    const index = out.length;
    el.setAttribute('{CANDIDATE_ATTR}', String(index));
    out.push({{
      index,
      text: (el.textContent || '').trim(),
      href,
      top: rect.top,
      width: rect.width,
      height: rect.height
    }});
  }});
  return out;
}})()"""


def highlight_and_click_script(index: int, delay_ms: int) -> str:
    return f"""(() => {{
  const el = document.querySelector('[{CANDIDATE_ATTR}="' + {_js(str(index))} + '"]');
  if (!el) return {{ok: false, reason: 'not_found'}};
  el.style.backgroundColor = '#00ff00';
  el.style.transition = 'background-color 0.3s';
  el.style.border = '2px solid #0066ff';
  setTimeout(() => el.click(), {int(delay_ms)});
  return {{ok: true, text: (el.textContent || '').trim(), href: el.getAttribute('href') || ''}};
}})()"""


def click_script(selector: str, highlight_ms: int) -> str:
    return f"""(() => {{
  const el = document.querySelector({_js(selector)});
  if (!el) return {{ok: false, reason: 'not_found'}};
  el.click();
  el.style.outline = '2px solid #ff9800';
  setTimeout(() => {{ el.style.outline = ''; }}, {int(highlight_ms)});
  return {{ok: true}};
}})()"""


def fill_script(selector: str, value: str, highlight_ms: int) -> str:
    return f"""(() => {{
  const el = document.querySelector({_js(selector)});
  if (!el) return {{ok: false, reason: 'not_found'}};
  el.value = {_js(value)};
  el.dispatchEvent(new Event('input', {{bubbles: true}}));
  el.dispatchEvent(new Event('change', {{bubbles: true}}));
  el.style.outline = '2px solid #4caf50';
  setTimeout(() => {{ el.style.outline = ''; }}, {int(highlight_ms)});
  return {{ok: true}};
}})()"""


def select_script(selector: str, option_text: str, highlight_ms: int) -> str:
    return f"""(() => {{
  const el = document.querySelector({_js(selector)});
  if (!el) return {{ok: false, reason: 'not_found'}};
  if (el.tagName !== 'SELECT') return {{ok: false, reason: 'not_select'}};
  const wanted = {_js(option_text.strip().lower())};
  const match = [...el.options].find(o => o.textContent.trim().toLowerCase() === wanted);
  if (!match) return {{ok: false, reason: 'no_option'}};
  el.value = match.value;
  el.dispatchEvent(new Event('change', {{bubbles: true}}));
  el.style.outline = '2px solid #2196f3';
  setTimeout(() => {{ el.style.outline = ''; }}, {int(highlight_ms)});
  return {{ok: true}};
}})()"""


def acknowledgment_script(keywords: Sequence[str], highlight_ms: int) -> str:
    """Check visible, enabled checkboxes whose label mentions an agreement keyword."""

    return f"""(() => {{
  const keywords = {_js([k.lower() for k in keywords])};
  const acknowledged = [];
  document.querySelectorAll('input[type="checkbox"]').forEach(box => {{
    if (box.offsetParent === null || box.disabled) return;
    const label = (box.labels && box.labels[0] && box.labels[0].textContent) ||
      (box.nextElementSibling && box.nextElementSibling.textContent) ||
      (box.parentElement && box.parentElement.textContent) || '';
    const lower = label.toLowerCase();
    if (!keywords.some(k => lower.includes(k))) return;
    if (!box.checked) {{
      box.checked = true;
      box.dispatchEvent(new Event('change', {{bubbles: true}}));
      const parent = box.parentElement || box;
      const original = parent.style.cssText;
      parent.style.backgroundColor = '#90EE90';
      parent.style.transition = 'background-color 0.3s';
      setTimeout(() => {{ parent.style.cssText = original; }}, {int(highlight_ms)});
    }}
    acknowledged.push(label.trim());
  }});
  return {{acknowledged}};
}})()"""


def form_detection_script() -> str:
    """Describe visible, editable form fields with a label and a usable selector."""

    return f"""(() => {{
  document.querySelectorAll('[{FORM_FIELD_ATTR}]').forEach(el => el.removeAttribute('{FORM_FIELD_ATTR}'));
  const fields = [];
  const inputs = document.querySelectorAll(
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"]):not([type="reset"]), textarea, select'
  );
  inputs.forEach((input, position) => {{
    const style = window.getComputedStyle(input);
    const rect = input.getBoundingClientRect();
    const visible = style.display !== 'none' && style.visibility !== 'hidden' && rect.width > 0 && rect.height > 0;
    if (!visible || input.disabled || input.readOnly) return;
    const tag = input.tagName.toLowerCase();
    let label = '';
    if (input.labels && input.labels.length > 0) label = input.labels[0].textContent.trim();
    else if (input.getAttribute('placeholder')) label = input.getAttribute('placeholder').trim();
    else if (input.getAttribute('aria-label')) label = input.getAttribute('aria-label').trim();
    else if (input.getAttribute('name')) label = input.getAttribute('name').replace(/[_-]/g, ' ').trim();
    else if (input.id) label = input.id.replace(/[_-]/g, ' ').trim();
    if (!label) label = (input.type || tag) + ' field ' + (position + 1);
    const index = String(fields.length);
    input.setAttribute('{FORM_FIELD_ATTR}', index);
    let selector;
    if (input.id) selector = '#' + CSS.escape(input.id);
    else if (input.name) selector = tag + '[name="' + input.name.replace(/"/g, '\\\\"') + '"]';
    else if (typeof input.className === 'string' && input.className.trim())
      selector = tag + '.' + input.className.trim().split(/\\s+/).map(c => CSS.escape(c)).join('.');
    else selector = '[{FORM_FIELD_ATTR}="' + index + '"]';
    fields.push({{
      selector,
      label,
      tag,
      input_type: tag === 'select' ? 'select' : (input.type || tag),
      required: !!input.required,
      options: tag === 'select' ? Array.from(input.options).map(o => o.text.trim()) : null
    }});
  }});
  return fields;
}})()"""


def fill_field_script(selector: str, value: str, highlight_ms: int) -> str:
    """Write one form answer; selects match option text exactly, then by containment."""

    return f"""(() => {{
  const el = document.querySelector({_js(selector)});
  if (!el) return {{ok: false, reason: 'not_found'}};
  const value = {_js(value)};
  el.focus();
  if (el.tagName.toLowerCase() === 'select') {{
    const wanted = value.trim().toLowerCase();
    const options = Array.from(el.options);
    const match = options.find(o => o.text.trim().toLowerCase() === wanted) ||
      options.find(o => o.text.toLowerCase().includes(wanted));
    if (!match) return {{ok: false, reason: 'no_option'}};
    el.value = match.value;
  }} else {{
    el.value = value;
  }}
  el.dispatchEvent(new Event('input', {{bubbles: true}}));
  el.dispatchEvent(new Event('change', {{bubbles: true}}));
  el.dispatchEvent(new Event('blur', {{bubbles: true}}));
  const original = el.style.cssText;
  el.style.backgroundColor = '#90EE90';
  el.style.border = '2px solid #00AA00';
  setTimeout(() => {{ el.style.cssText = original; }}, {int(highlight_ms)});
  return {{ok: true, value: el.value}};
}})()"""


def visible_text_script() -> str:
    return """(() => {
  function visibleText(node) {
    if (!node) return '';
    if (node.nodeType === Node.TEXT_NODE) return node.textContent.trim();
    if (node.nodeType !== Node.ELEMENT_NODE) return '';
    const tag = node.tagName.toLowerCase();
    if (tag === 'script' || tag === 'style' || tag === 'noscript') return '';
    const style = window.getComputedStyle(node);
    if (style && (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0')) return '';
    const parts = [];
    for (const child of node.childNodes) {
      const text = visibleText(child);
      if (text) parts.push(text);
    }
    return parts.join(' ');
  }
  return visibleText(document.body).replace(/\\s+/g, ' ').trim();
})()"""


def screen_context_script() -> str:
    """Visible interactive elements, as context for the action planner."""

    return """(() => {
  const roles = ['button', 'link', 'textbox', 'searchbox', 'menuitem'];
  const interactive = ['a', 'button', 'input', 'select', 'textarea'];
  const out = [];
  document.querySelectorAll('a, button, input, select, textarea, [role]').forEach(el => {
    const style = window.getComputedStyle(el);
    if (!style || style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') return;
    const tag = el.tagName.toLowerCase();
    const role = el.getAttribute('role');
    if (!interactive.includes(tag) && !(role && roles.includes(role))) return;
    const info = {tag};
    if (el.id) info.id = el.id;
    if (typeof el.className === 'string' && el.className) info.class = el.className;
    for (const attr of ['name', 'type', 'placeholder', 'aria-label', 'role', 'href']) {
      const value = el.getAttribute(attr);
      if (value) info[attr] = value;
    }
    const text = (el.innerText || '').trim();
    if (text) info.text = text.substring(0, 160);
    out.push(info);
  });
  return out;
})()"""


def page_text_script() -> str:
    """Title, URL and readable text of the current page."""

    return _PAGE_TEXT_SCRIPT


_PAGE_TEXT_SCRIPT = """(() => {
  function visibleText(node) {
    if (!node) return '';
    if (node.nodeType === Node.TEXT_NODE) return node.textContent.trim();
    if (node.nodeType !== Node.ELEMENT_NODE) return '';
    const tag = node.tagName.toLowerCase();
    if (['script', 'style', 'noscript', 'nav', 'footer'].includes(tag)) return '';
    const style = window.getComputedStyle(node);
    if (style && (style.display === 'none' || style.visibility === 'hidden')) return '';
    const parts = [];
    for (const child of node.childNodes) {
      const text = visibleText(child);
      if (text) parts.push(text);
    }
    const joined = parts.join(' ');
    return ['p', 'div', 'li', 'section', 'article', 'h1', 'h2', 'h3', 'h4', 'br'].includes(tag)
      ? joined + '\\n'
      : joined;
  }
  const root = document.querySelector('main, article, [role="main"]') || document.body;
  const text = root ? visibleText(root).replace(/[ \\t]+/g, ' ').replace(/\\n\\s*\\n+/g, '\\n\\n').trim() : '';
  return {title: document.title || '', url: location.href, text};
})()"""


def next_step_snapshot_script(limit: int) -> str:
    return f"""(() => {{
  const wanted = ['a', 'button', 'input', 'h1', 'h2', 'h3', 'p', 'section', 'article', 'nav', 'li', 'span', 'div'];
  const elements = [];
  const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_ELEMENT, null);
  let node;
  while ((node = walker.nextNode()) && elements.length < {int(limit)}) {{
    const tag = node.tagName.toLowerCase();
    if (!wanted.includes(tag)) continue;
    const rect = node.getBoundingClientRect();
    if (rect.width < 40 || rect.height < 12) continue;
    const style = window.getComputedStyle(node);
    if (style.visibility === 'hidden' || style.display === 'none') continue;
    const text = (node.innerText || '').trim();
    if (!text) continue;
    elements.push({{tag, text: text.substring(0, 160), top: Math.round(rect.top)}});
  }}
  return {{title: document.title || '', url: location.href, elements}};
}})()"""


def paragraph_collect_script() -> str:
    """Tag visible paragraphs and return their text in document order."""

    return f"""(() => {{
  const out = [];
  document.querySelectorAll('p').forEach(p => {{
    if (p.offsetParent === null) return;
    const text = (p.innerText || '').trim();
    if (!text) return;
    const index = out.length;
    p.setAttribute('{PARAGRAPH_ATTR}', String(index));
    out.push({{index, text}});
  }});
  return out;
}})()"""


def paragraph_write_script(replacements: Mapping[int, str]) -> str:
    payload = {str(index): text for index, text in replacements.items()}
    return f"""(() => {{
  const replacements = {_js(payload)};
  let written = 0;
  for (const [index, text] of Object.entries(replacements)) {{
    const p = document.querySelector('[{PARAGRAPH_ATTR}="' + index + '"]');
    if (!p) continue;
    p.textContent = text;
    written += 1;
  }}
  return {{written}};
}})()"""


def read_body_html_script() -> str:
    return "(() => document.body ? document.body.innerHTML : '')()"


def write_body_html_script(html: str) -> str:
    return f"""(() => {{
  if (!document.body) return {{ok: false}};
  document.body.innerHTML = {_js(html)};
  return {{ok: true}};
}})()"""
